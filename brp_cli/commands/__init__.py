"""Domain commands: typed variants, their textual form, and execution against a live app."""

from brp_cli.commands.execution import (
	detect_running_instances,
	execute_command,
	handle_stream_response,
	run_command_list,
	wait_for_app_ready,
)
from brp_cli.commands.parsing import format_command, parse_command_list, parse_command_string
from brp_cli.commands.views import COMMAND_TABLE, ArgKind, Command

__all__ = [
	'COMMAND_TABLE',
	'ArgKind',
	'Command',
	'parse_command_string',
	'format_command',
	'parse_command_list',
	'detect_running_instances',
	'execute_command',
	'handle_stream_response',
	'run_command_list',
	'wait_for_app_ready',
]
