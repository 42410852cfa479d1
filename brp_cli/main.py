#!/usr/bin/env python3
"""Command-line entry point for brp.

Three ways to reach an app:

- standalone: talk to an app that is already running on --port
- managed (-m): start the app, run a comma-separated batch, stop the app
- detached (-d): start the app in the background and leave it running
"""

import argparse
import asyncio
import json
import sys

from brp_cli.commands.execution import detect_running_instances, execute_command
from brp_cli.commands.parsing import parse_command_string
from brp_cli.constants import BIN_NAME, DEFAULT_REMOTE_PORT
from brp_cli.discovery import AppDiscovery
from brp_cli.exceptions import BrpError
from brp_cli.logging_config import setup_logging
from brp_cli.rpc.client import RemoteClient
from brp_cli.session.detached import cleanup_all_logs, get_session_info, start_detached
from brp_cli.session.managed import run_managed
from brp_cli.session.views import CleanupReport
from brp_cli.support.json import print_json


def _port(value: str) -> int:
	try:
		port = int(value)
	except ValueError:
		raise argparse.ArgumentTypeError(f'invalid port: {value}') from None
	if not 0 < port < 65536:
		raise argparse.ArgumentTypeError(f'port out of range: {value}')
	return port


def build_parser() -> argparse.ArgumentParser:
	"""Build argument parser with all flags."""
	parser = argparse.ArgumentParser(
		prog=BIN_NAME,
		description='Control Bevy apps remotely over the Bevy Remote Protocol (BRP)',
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog=f"""
Examples:
  {BIN_NAME} list                                  # List registered components
  {BIN_NAME} get 4294967298 bevy_transform::components::transform::Transform
  {BIN_NAME} get+watch 4294967298 my_game::Health  # Stream changes until Ctrl+C
  {BIN_NAME} -m 'list, wait:1, shutdown'           # Start app, run batch, stop app
  {BIN_NAME} -a my_game -d                         # Start app in the background
  {BIN_NAME} --info                                # Show the detached session
  {BIN_NAME} --cleanup-logs                        # Remove stale session files
""",
	)

	parser.add_argument(
		'--port', '-p', type=_port, default=DEFAULT_REMOTE_PORT, help=f'Port to connect to (default: {DEFAULT_REMOTE_PORT})'
	)
	parser.add_argument(
		'--managed-commands', '-m', metavar='COMMANDS', help='Start the app and execute commands directly (comma-separated)'
	)
	parser.add_argument('--app', '-a', help='App binary to run in managed or detached mode (detected if omitted)')
	parser.add_argument('--profile', '-P', help='Build profile to use (default: debug)')
	parser.add_argument('--detached', '-d', action='store_true', help='Start the app in the background with a temp log file')
	parser.add_argument('--info', '-i', action='store_true', help='Show information about the detached session on --port')
	parser.add_argument('--cleanup-logs', '-c', action='store_true', help='Remove session files of sessions that are no longer running')
	parser.add_argument('--detect', '-D', action='store_true', help='Show the app detected in the current workspace')
	parser.add_argument('--json', action='store_true', help='Output as JSON')
	parser.add_argument('command', nargs=argparse.REMAINDER, help='Command to run against a running app, e.g. "list"')
	return parser


def validate_args(args: argparse.Namespace) -> str | None:
	"""Return an error message for flag combinations that make no sense together."""
	if args.detached and args.managed_commands:
		return 'Cannot use --detached and --managed-commands together'
	if args.detached and args.command:
		return '--detached cannot be used with commands. It only starts the app.'
	if args.app and not args.detached and not args.managed_commands:
		return (
			'--app/-a can only be used with --detached/-d or --managed-commands/-m\n'
			f'  Use: {BIN_NAME} -a <APP> -d\n'
			f"  Or:  {BIN_NAME} -a <APP> -m '<commands>'"
		)
	return None


def _print_cleanup_report(report: CleanupReport, as_json: bool) -> None:
	if as_json:
		print_json(report.model_dump(mode='json'))
		return

	for info in report.active_sessions:
		print(f'Found active session on port {info.port} (PID: {info.pid})')
	for name in report.preserved:
		print(f'Preserving active {_file_kind(name)}: {name}')
	for name in report.removed:
		print(f'Removed inactive {_file_kind(name)}: {name}')
	for error in report.errors:
		print(f'Failed to remove {error}', file=sys.stderr)

	if report.is_empty:
		print(f'No {BIN_NAME} session files found')
		return
	print('\nCleanup complete:')
	if report.removed:
		print(f'  - {len(report.removed)} inactive files removed')
	if report.preserved:
		print(f'  - {len(report.preserved)} active session files preserved')
	if report.errors:
		print(f'  - {len(report.errors)} files could not be removed (errors)')


def _file_kind(name: str) -> str:
	return 'log file' if name.endswith('.log') else 'session info'


def handle_detect(args: argparse.Namespace) -> int:
	try:
		resolved = AppDiscovery().resolve(args.app, args.profile)
	except BrpError as e:
		print(f'Error detecting app: {e}', file=sys.stderr)
		return 1

	if args.json:
		print_json(resolved.model_dump(mode='json'))
	else:
		print(f'Detected app: {resolved.name}')
		print(f'  Binary: {resolved.binary_path}')
		print(f'  Working directory: {resolved.working_dir}')
	return 0


async def handle_detached(args: argparse.Namespace) -> int:
	print('Starting app in detached mode...', flush=True)
	session = await start_detached(args.app, args.port, args.profile)

	if args.json:
		print_json(session.model_dump(mode='json'))
		return 0
	print(f'App started successfully on port {session.port}')
	print('\nDetached session started:')
	print(f'  PID: {session.pid}')
	print(f'  Port: {session.port}')
	print(f'  Log file: {session.log_file}')
	print(f"\nUse '{BIN_NAME} --info' to get session details")
	print(f"Use '{BIN_NAME} shutdown' to stop the app")
	return 0


async def handle_standalone(args: argparse.Namespace, command_text: str) -> int:
	command = parse_command_string(command_text)

	running = await detect_running_instances(args.port)
	if not running:
		print(
			f'Error: No app is running on port {args.port}. Start the app first or use --managed mode.',
			file=sys.stderr,
		)
		return 1
	if len(running) > 1:
		print(f'Error: Multiple app instances detected on ports: {running}', file=sys.stderr)
		print('Please specify which instance to connect to using --port <PORT>', file=sys.stderr)
		print('\nAvailable instances:', file=sys.stderr)
		for port in running:
			print(f'  - Port {port}', file=sys.stderr)
		return 1

	await execute_command(RemoteClient(running[0]), command)
	return 0


async def run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
	if args.info:
		report = await get_session_info(args.port)
		if report is None:
			print(f'No detached session found on port {args.port}', file=sys.stderr)
			return 1
		print_json(report.model_dump(mode='json', exclude_none=True))
		return 0

	if args.cleanup_logs:
		_print_cleanup_report(cleanup_all_logs(), args.json)
		return 0

	if args.detect:
		return handle_detect(args)

	error = validate_args(args)
	if error:
		print(f'Error: {error}', file=sys.stderr)
		return 1

	command_text = ' '.join(args.command).strip()

	if args.detached:
		return await handle_detached(args)

	if args.managed_commands:
		if command_text:
			print(
				f"Warning: Direct command '{command_text}' used with --managed-commands - direct command ignored",
				file=sys.stderr,
			)
		await run_managed(args.app, args.managed_commands, args.port, args.profile)
		return 0

	if not command_text:
		parser.print_help()
		return 0

	return await handle_standalone(args, command_text)


def main(argv: list[str] | None = None) -> int:
	"""Main entry point."""
	parser = build_parser()
	args = parser.parse_args(argv)
	setup_logging()

	try:
		return asyncio.run(run(args, parser))
	except KeyboardInterrupt:
		return 130
	except (BrpError, OSError) as e:
		if args.json:
			print(json.dumps({'success': False, 'error': str(e)}), file=sys.stderr)
		else:
			print(f'Error: {e}', file=sys.stderr)
		return 1


def main_entry() -> None:
	sys.exit(main())


if __name__ == '__main__':
	main_entry()
