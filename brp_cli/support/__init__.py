"""Shared helpers: polling, port probing, process inspection and JSON output."""

from brp_cli.support.json import format_json, parse_json_object, parse_json_value, print_json
from brp_cli.support.polling import poll_until_ready
from brp_cli.support.ports import (
	is_connection_error,
	is_port_available,
	is_port_connectable,
	pick_random_available_port,
	wait_for_port_connectable,
)
from brp_cli.support.process import ensure_terminated, is_process_alive

__all__ = [
	'poll_until_ready',
	'is_connection_error',
	'is_port_available',
	'is_port_connectable',
	'pick_random_available_port',
	'wait_for_port_connectable',
	'ensure_terminated',
	'is_process_alive',
	'format_json',
	'parse_json_object',
	'parse_json_value',
	'print_json',
]
