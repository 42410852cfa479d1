"""Managed mode: run the app for exactly the duration of one command batch."""

import asyncio
import logging
import os
import sys

from brp_cli.commands.execution import run_command_list, wait_for_app_ready
from brp_cli.commands.parsing import parse_command_list
from brp_cli.constants import (
	DEFAULT_REMOTE_PORT,
	MANAGED_PORT_ATTEMPTS,
	MANAGED_PORT_MAX,
	MANAGED_PORT_MIN,
	MANAGED_START_TIMEOUT_SECS,
	PROJECT_ROOT_ENV,
)
from brp_cli.discovery import AppDiscovery, ResolvedApp
from brp_cli.exceptions import ProcessLifecycleError
from brp_cli.rpc.client import RemoteClient
from brp_cli.support.ports import pick_random_available_port, wait_for_port_connectable

logger = logging.getLogger(__name__)

# Bound on each teardown step (draining output, reaping the killed child)
STOP_TIMEOUT_SECS = 5.0


def pick_managed_port(requested_port: int) -> int:
	"""Use the requested port, unless it is the default: then pick a free one from the managed range."""
	if requested_port != DEFAULT_REMOTE_PORT:
		return requested_port
	port = pick_random_available_port(MANAGED_PORT_MIN, MANAGED_PORT_MAX, MANAGED_PORT_ATTEMPTS)
	print(f'Selected random port: {port}')
	return port


async def _forward_lines(reader: asyncio.StreamReader, prefix: str, to_stderr: bool) -> None:
	"""Copy the child's output line by line, prefixed with the app name.

	A line longer than the reader's buffer limit is forwarded in pieces, so
	the pipe keeps draining whatever the child writes.
	"""
	in_long_line = False
	while True:
		try:
			line = await reader.readuntil(b'\n')
		except asyncio.IncompleteReadError as e:
			line = e.partial
			if not line:
				return
		except asyncio.LimitOverrunError as e:
			line = await reader.read(max(e.consumed, 1))
			in_long_line = True
		else:
			if in_long_line and line.strip(b'\r\n') == b'':
				# Separator that ended a line already forwarded in pieces
				in_long_line = False
				continue
			in_long_line = False

		text = line.decode('utf-8', errors='replace').rstrip('\r\n')
		print(f'[{prefix}] {text}', file=sys.stderr if to_stderr else sys.stdout, flush=True)


class ManagedApp:
	"""The app as a child of this invocation.

	Use as an async context manager: leaving the block kills the child and
	cancels the output pumps, however the block is left.

	Usage:
	    async with ManagedApp(resolved, port) as app:
	        await app.wait_until_listening(timeout=10)
	"""

	def __init__(self, app: ResolvedApp, port: int):
		self.app = app
		self.port = port
		self.process: asyncio.subprocess.Process | None = None
		self._pumps: list[asyncio.Task] = []

	@property
	def pid(self) -> int | None:
		return self.process.pid if self.process else None

	async def start(self) -> None:
		env = {**os.environ, PROJECT_ROOT_ENV: str(self.app.working_dir)}
		try:
			self.process = await asyncio.create_subprocess_exec(
				str(self.app.binary_path),
				'--port',
				str(self.port),
				cwd=self.app.working_dir,
				env=env,
				stdin=asyncio.subprocess.DEVNULL,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
			)
		except OSError as e:
			raise ProcessLifecycleError(f'Failed to start app {self.app.binary_path}: {e}') from e

		logger.debug(f'Spawned {self.app.name} (pid={self.process.pid}) on port {self.port}')
		assert self.process.stdout is not None and self.process.stderr is not None
		self._pumps = [
			asyncio.create_task(_forward_lines(self.process.stdout, self.app.name, to_stderr=False)),
			asyncio.create_task(_forward_lines(self.process.stderr, self.app.name, to_stderr=True)),
		]

	async def wait_until_listening(self, timeout: float = MANAGED_START_TIMEOUT_SECS) -> None:
		"""Wait for the port to accept connections, failing early if the child exits first."""
		assert self.process is not None
		listening = asyncio.ensure_future(wait_for_port_connectable(self.port, timeout))
		exited = asyncio.ensure_future(self.process.wait())
		try:
			done, _ = await asyncio.wait({listening, exited}, return_when=asyncio.FIRST_COMPLETED)
		finally:
			exited.cancel()
			if not listening.done():
				listening.cancel()

		if listening in done:
			listening.result()
			return
		try:
			await listening
		except asyncio.CancelledError:
			pass
		raise ProcessLifecycleError(
			f'App exited with status {self.process.returncode} before listening on port {self.port}'
		)

	async def stop(self) -> None:
		"""Kill the child, drain its output, and reap it.

		The pumps keep reading until the killed child's pipes reach EOF, so the
		pipes are never left full. Every wait here is bounded.
		"""
		if self.process is not None and self.process.returncode is None:
			try:
				self.process.kill()
			except ProcessLookupError:
				pass

		if self._pumps:
			_, pending = await asyncio.wait(self._pumps, timeout=STOP_TIMEOUT_SECS)
			for task in pending:
				task.cancel()
			await asyncio.gather(*self._pumps, return_exceptions=True)
			self._pumps = []

		if self.process is None:
			return
		try:
			await asyncio.wait_for(self.process.wait(), timeout=STOP_TIMEOUT_SECS)
		except asyncio.TimeoutError:
			logger.warning(f'{self.app.name} (pid={self.process.pid}) was killed but could not be reaped')
			return
		logger.debug(f'Stopped {self.app.name} (pid={self.process.pid})')

	async def __aenter__(self) -> 'ManagedApp':
		await self.start()
		return self

	async def __aexit__(self, *exc_info) -> None:
		# Shielded so a cancelled batch still reaps the child
		await asyncio.shield(self.stop())


async def run_managed(
	app: str | None,
	commands: str | None,
	requested_port: int,
	profile: str | None,
	discovery: AppDiscovery | None = None,
) -> None:
	"""Start the app, run a comma-separated command batch against it, then stop it."""
	if not commands or not commands.strip():
		raise ProcessLifecycleError('No commands provided for managed mode')
	command_list = parse_command_list(commands)

	resolved = (discovery or AppDiscovery()).resolve(app, profile)
	print(f'Starting app: {resolved.binary_path}')
	port = pick_managed_port(requested_port)
	print(f'Using manifest directory: {resolved.working_dir}')

	async with ManagedApp(resolved, port) as managed:
		await managed.wait_until_listening()
		print(f'\nApp started on port {port}. Ready for remote commands.\n', flush=True)

		client = RemoteClient(port)
		await wait_for_app_ready(client)
		await run_command_list(client, command_list)
