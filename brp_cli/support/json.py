import json
from typing import Any

from brp_cli.exceptions import CommandParseError


def parse_json_value(text: str, context: str) -> Any:
	try:
		return json.loads(text)
	except json.JSONDecodeError as e:
		raise CommandParseError(f'{context}: invalid JSON ({e.msg} at position {e.pos}): {text}') from e


def parse_json_object(text: str, context: str) -> dict[str, Any]:
	"""Parse `text` as JSON and require an object."""
	value = parse_json_value(text, context)
	if not isinstance(value, dict):
		raise CommandParseError(f'{context}: expected a JSON object, got: {text}')
	return value


def format_json(value: Any) -> str:
	return json.dumps(value, indent=2, ensure_ascii=False)


def print_json(value: Any) -> None:
	print(format_json(value), flush=True)
