from brp_cli.commands.views import COMMAND_TABLE, ArgKind, Command, Raw, Schema, Wait
from brp_cli.exceptions import CommandParseError

WAIT_PREFIX = 'wait:'


def _parse_entity(token: str, command_name: str) -> int:
	try:
		entity = int(token)
	except ValueError:
		raise CommandParseError(f"{command_name}: invalid entity ID '{token}' (expected a u64 integer)") from None
	if entity < 0 or entity >= 2**64:
		raise CommandParseError(f"{command_name}: entity ID '{token}' is out of range for u64")
	return entity


def _parse_wait(command: str) -> Wait:
	value = command[len(WAIT_PREFIX) :].strip()
	try:
		seconds = float(value)
	except ValueError:
		raise CommandParseError(f'Invalid wait command: {command}') from None
	if seconds < 0:
		raise CommandParseError(f'Invalid wait command: {command}')
	return Wait(seconds=seconds)


def _parse_schema(args: list[str]) -> Schema:
	filters: dict[str, tuple[str, ...]] = {}
	index = 0
	while index < len(args):
		flag = args[index]
		field_name = Schema.FLAGS.get(flag)
		if field_name is None:
			raise CommandParseError(f"schema: unexpected argument '{flag}'")
		index += 1
		values = []
		while index < len(args) and not args[index].startswith('--'):
			values.append(args[index])
			index += 1
		if not values:
			raise CommandParseError(f'schema: {flag} requires at least one value')
		filters[field_name] = tuple(values)
	return Schema(**filters)


def parse_command_string(command: str) -> Command:
	"""Parse one command from its textual form.

	Unknown verbs that look like method names (contain '/' or '.') become Raw
	commands; anything else unknown is an error.
	"""
	command = command.strip()
	if command.startswith(WAIT_PREFIX):
		return _parse_wait(command)

	parts = command.split()
	if not parts:
		raise CommandParseError('Empty command')

	name, args = parts[0], parts[1:]
	if name == Schema.NAME:
		return _parse_schema(args)
	cls = COMMAND_TABLE.get(name)
	if cls is None:
		if '/' in name or '.' in name:
			return Raw(args=tuple(parts))
		raise CommandParseError(f"Unknown command '{name}'")

	values: dict[str, object] = {}
	index = 0
	for field_name, kind in cls.ARGS:
		if kind in (ArgKind.ENTITY, ArgKind.WORD):
			if index >= len(args):
				raise CommandParseError(f'{name} requires {cls.REQUIRES}')
			token = args[index]
			values[field_name] = _parse_entity(token, name) if kind == ArgKind.ENTITY else token
			index += 1
		else:
			rest = args[index:]
			if not rest:
				raise CommandParseError(f'{name} requires {cls.REQUIRES}')
			values[field_name] = ' '.join(rest) if kind == ArgKind.REST else tuple(rest)
			index = len(args)

	if index < len(args):
		raise CommandParseError(f"{name}: unexpected argument '{args[index]}'")
	return cls(**values)


def format_command(command: Command) -> str:
	"""Render a command back to the text `parse_command_string` accepts."""
	if isinstance(command, Wait):
		seconds = float(command.seconds)
		return f'{WAIT_PREFIX}{int(seconds)}' if seconds.is_integer() else f'{WAIT_PREFIX}{seconds!r}'
	if isinstance(command, Raw):
		return ' '.join(command.args)
	if isinstance(command, Schema):
		parts = [command.NAME]
		for flag, field_name in Schema.FLAGS.items():
			values = getattr(command, field_name)
			if values:
				parts.extend([flag, *values])
		return ' '.join(parts)

	parts = [command.NAME]
	for field_name, kind in command.ARGS:
		value = getattr(command, field_name)
		if kind == ArgKind.WORDS:
			parts.extend(value)
		else:
			parts.append(str(value))
	return ' '.join(parts)


def parse_command_list(text: str) -> list[str]:
	"""Split a comma-separated batch into command strings.

	Commas inside JSON objects (including inside their string values) do not
	split.
	"""
	commands: list[str] = []
	current: list[str] = []
	depth = 0
	in_string = False
	escape_next = False

	for ch in text:
		if escape_next:
			current.append(ch)
			escape_next = False
			continue

		if depth > 0 and ch == '\\':
			escape_next = True
		elif depth > 0 and ch == '"':
			in_string = not in_string
		elif ch == '{' and not in_string:
			depth += 1
		elif ch == '}' and not in_string and depth > 0:
			depth -= 1
		elif ch == ',' and depth == 0:
			if ''.join(current).strip():
				commands.append(''.join(current).strip())
			current = []
			continue
		current.append(ch)

	if ''.join(current).strip():
		commands.append(''.join(current).strip())
	return commands
