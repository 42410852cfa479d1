"""Tests for the textual form of commands and batch splitting."""

import pytest

from brp_cli.commands.parsing import format_command, parse_command_list, parse_command_string
from brp_cli.commands.views import (
	COMMAND_TABLE,
	Destroy,
	Get,
	GetResource,
	GetWatch,
	Insert,
	InsertResource,
	List,
	ListEntities,
	ListEntity,
	ListResources,
	ListWatch,
	Methods,
	MutateComponent,
	MutateResource,
	Query,
	Raw,
	Ready,
	Remove,
	RemoveResource,
	Reparent,
	Schema,
	Screenshot,
	Shutdown,
	Spawn,
	Wait,
)
from brp_cli.exceptions import CommandParseError

TRANSFORM = 'bevy_transform::components::transform::Transform'

EVERY_VARIANT = [
	List(),
	Query(components=(TRANSFORM, 'bevy_ecs::name::Name')),
	Get(entity=4294967298, component=TRANSFORM),
	Spawn(components='{"my::Health": {"current": 10}}'),
	Destroy(entity=12),
	Insert(entity=12, components='{"my::Tag": {}}'),
	Remove(entity=12, component='my::Tag'),
	Reparent(child=12, parent='13'),
	Reparent(child=12, parent='null'),
	MutateComponent(entity=12, component='my::Health', patch='{"current": 5}'),
	ListEntities(),
	ListEntity(entity=4294967298),
	ListResources(),
	GetResource(resource='my::Score'),
	InsertResource(data='{"my::Score": {"value": 3}}'),
	RemoveResource(resource='my::Score'),
	MutateResource(resource='my::Score', patch='{"value": 4}'),
	GetWatch(entity=12, components=('my::Health',)),
	ListWatch(entity=12),
	Screenshot(path='/tmp/shot.png'),
	Shutdown(),
	Ready(),
	Methods(),
	Schema(),
	Schema(with_crates=('bevy_ecs', 'my_game'), without_types=('Component',)),
	Schema(without_crates=('bevy_render',), with_types=('Resource', 'Serialize')),
	Wait(seconds=2),
	Wait(seconds=0.5),
]


@pytest.mark.parametrize('command', EVERY_VARIANT, ids=lambda c: type(c).__name__)
def test_format_then_parse_gives_back_the_command(command):
	assert parse_command_string(format_command(command)) == command


def test_every_table_entry_is_covered():
	covered = {type(c) for c in EVERY_VARIANT}
	assert set(COMMAND_TABLE.values()) <= covered


class TestParseCommandString:
	def test_get(self):
		assert parse_command_string(f'get 42 {TRANSFORM}') == Get(entity=42, component=TRANSFORM)

	def test_json_payload_keeps_inner_spaces_collapsed(self):
		command = parse_command_string('insert 7   {"a::B": {"x": 1}}')
		assert command == Insert(entity=7, components='{"a::B": {"x": 1}}')

	def test_wait(self):
		assert parse_command_string('wait:3') == Wait(seconds=3.0)

	@pytest.mark.parametrize('text', ['wait:', 'wait:soon', 'wait:-1'])
	def test_invalid_wait(self, text):
		with pytest.raises(CommandParseError, match='Invalid wait command'):
			parse_command_string(text)

	def test_unknown_method_like_verb_is_raw(self):
		command = parse_command_string('my_plugin/do_thing {"x": 1}')
		assert command == Raw(args=('my_plugin/do_thing', '{"x":', '1}'))
		assert format_command(command) == 'my_plugin/do_thing {"x": 1}'

	def test_unknown_verb(self):
		with pytest.raises(CommandParseError, match="Unknown command 'frobnicate'"):
			parse_command_string('frobnicate 1')

	def test_missing_arguments(self):
		with pytest.raises(CommandParseError, match='get requires entity ID and component name'):
			parse_command_string('get 42')

	def test_extra_arguments(self):
		with pytest.raises(CommandParseError, match="unexpected argument 'extra'"):
			parse_command_string('destroy 1 extra')

	@pytest.mark.parametrize('entity', ['abc', '-1', str(2**64)])
	def test_bad_entity(self, entity):
		with pytest.raises(CommandParseError):
			parse_command_string(f'destroy {entity}')

	def test_empty(self):
		with pytest.raises(CommandParseError):
			parse_command_string('   ')


class TestSchemaFilters:
	def test_each_flag_takes_tokens_up_to_the_next_flag(self):
		command = parse_command_string('schema --with-crates bevy_ecs my_game --without-types Component')
		assert command == Schema(with_crates=('bevy_ecs', 'my_game'), without_types=('Component',))

	def test_no_flags(self):
		assert parse_command_string('schema') == Schema()
		assert format_command(Schema()) == 'schema'

	def test_flag_without_values(self):
		with pytest.raises(CommandParseError, match='--with-types requires at least one value'):
			parse_command_string('schema --with-types --without-crates bevy_render')

	def test_unknown_flag(self):
		with pytest.raises(CommandParseError, match="unexpected argument '--everything'"):
			parse_command_string('schema --everything')


class TestParseCommandList:
	def test_plain_list(self):
		assert parse_command_list('list, wait:1 ,shutdown') == ['list', 'wait:1', 'shutdown']

	def test_commas_inside_json_do_not_split(self):
		text = 'spawn {"a::B": {"x": 1, "y": 2}}, list'
		assert parse_command_list(text) == ['spawn {"a::B": {"x": 1, "y": 2}}', 'list']

	def test_braces_and_commas_inside_strings(self):
		text = 'insert_resource {"my::Label": {"text": "a, b } c"}}, shutdown'
		assert parse_command_list(text) == ['insert_resource {"my::Label": {"text": "a, b } c"}}', 'shutdown']

	def test_escaped_quote_inside_string(self):
		text = 'spawn {"my::Label": {"text": "say \\"hi\\", ok"}}, list'
		assert parse_command_list(text) == ['spawn {"my::Label": {"text": "say \\"hi\\", ok"}}', 'list']

	def test_empty_entries_are_skipped(self):
		assert parse_command_list(' , list,, ') == ['list']
