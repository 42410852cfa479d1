"""Command variants and the table mapping them to and from their textual form.

Each variant declares its verb (`NAME`) and the positional arguments it takes
(`ARGS`, a tuple of (field, kind) pairs). `parsing.py` uses the same table in
both directions, which is what makes `parse(format(cmd)) == cmd` hold for
every variant except `Raw`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


class ArgKind(str, Enum):
	ENTITY = 'entity'  # one unsigned integer
	WORD = 'word'  # one whitespace-free token
	REST = 'rest'  # all remaining tokens joined by single spaces (JSON payloads, names)
	WORDS = 'words'  # all remaining tokens as a tuple


@dataclass(frozen=True)
class Command:
	NAME: ClassVar[str] = ''
	ARGS: ClassVar[tuple[tuple[str, ArgKind], ...]] = ()
	REQUIRES: ClassVar[str] = ''


@dataclass(frozen=True)
class List(Command):
	NAME = 'list'


@dataclass(frozen=True)
class Query(Command):
	NAME = 'query'
	ARGS = (('components', ArgKind.WORDS),)
	REQUIRES = 'at least one component name'
	components: tuple[str, ...] = ()


@dataclass(frozen=True)
class Get(Command):
	NAME = 'get'
	ARGS = (('entity', ArgKind.ENTITY), ('component', ArgKind.WORD))
	REQUIRES = 'entity ID and component name'
	entity: int = 0
	component: str = ''


@dataclass(frozen=True)
class Spawn(Command):
	NAME = 'spawn'
	ARGS = (('components', ArgKind.REST),)
	REQUIRES = 'JSON object with component data'
	components: str = ''


@dataclass(frozen=True)
class Destroy(Command):
	NAME = 'destroy'
	ARGS = (('entity', ArgKind.ENTITY),)
	REQUIRES = 'entity ID'
	entity: int = 0


@dataclass(frozen=True)
class Insert(Command):
	NAME = 'insert'
	ARGS = (('entity', ArgKind.ENTITY), ('components', ArgKind.REST))
	REQUIRES = 'entity ID and JSON object'
	entity: int = 0
	components: str = ''


@dataclass(frozen=True)
class Remove(Command):
	NAME = 'remove'
	ARGS = (('entity', ArgKind.ENTITY), ('component', ArgKind.WORD))
	REQUIRES = 'entity ID and component name'
	entity: int = 0
	component: str = ''


@dataclass(frozen=True)
class Reparent(Command):
	NAME = 'reparent'
	ARGS = (('child', ArgKind.ENTITY), ('parent', ArgKind.WORD))
	REQUIRES = "child ID and parent ID (or 'null')"
	child: int = 0
	parent: str = 'null'


@dataclass(frozen=True)
class MutateComponent(Command):
	NAME = 'mutate_component'
	ARGS = (('entity', ArgKind.ENTITY), ('component', ArgKind.WORD), ('patch', ArgKind.REST))
	REQUIRES = 'entity ID, component name, and JSON patch'
	entity: int = 0
	component: str = ''
	patch: str = ''


@dataclass(frozen=True)
class ListEntities(Command):
	"""Every entity with the names of its components, built from one query per component type."""

	NAME = 'list_entities'


@dataclass(frozen=True)
class ListEntity(Command):
	NAME = 'list_entity'
	ARGS = (('entity', ArgKind.ENTITY),)
	REQUIRES = 'entity ID'
	entity: int = 0


@dataclass(frozen=True)
class ListResources(Command):
	NAME = 'list_resources'


@dataclass(frozen=True)
class GetResource(Command):
	NAME = 'get_resource'
	ARGS = (('resource', ArgKind.REST),)
	REQUIRES = 'resource name'
	resource: str = ''


@dataclass(frozen=True)
class InsertResource(Command):
	NAME = 'insert_resource'
	ARGS = (('data', ArgKind.REST),)
	REQUIRES = 'JSON object with resource data'
	data: str = ''


@dataclass(frozen=True)
class RemoveResource(Command):
	NAME = 'remove_resource'
	ARGS = (('resource', ArgKind.REST),)
	REQUIRES = 'resource name'
	resource: str = ''


@dataclass(frozen=True)
class MutateResource(Command):
	NAME = 'mutate_resource'
	ARGS = (('resource', ArgKind.WORD), ('patch', ArgKind.REST))
	REQUIRES = 'resource name and JSON patch'
	resource: str = ''
	patch: str = ''


@dataclass(frozen=True)
class GetWatch(Command):
	NAME = 'get+watch'
	ARGS = (('entity', ArgKind.ENTITY), ('components', ArgKind.WORDS))
	REQUIRES = 'entity ID and at least one component name'
	entity: int = 0
	components: tuple[str, ...] = ()


@dataclass(frozen=True)
class ListWatch(Command):
	NAME = 'list+watch'
	ARGS = (('entity', ArgKind.ENTITY),)
	REQUIRES = 'entity ID'
	entity: int = 0


@dataclass(frozen=True)
class Screenshot(Command):
	NAME = 'screenshot'
	ARGS = (('path', ArgKind.REST),)
	REQUIRES = 'file path'
	path: str = ''


@dataclass(frozen=True)
class Shutdown(Command):
	NAME = 'shutdown'


@dataclass(frozen=True)
class Ready(Command):
	NAME = 'ready'


@dataclass(frozen=True)
class Methods(Command):
	NAME = 'methods'


@dataclass(frozen=True)
class Schema(Command):
	"""Type schemas from the registry, optionally filtered.

	Filters are given as `--with-crates a b --without-types Component`; each
	flag takes the tokens up to the next `--` flag. A field left as None sends
	no filter of that kind.
	"""

	NAME = 'schema'
	FLAGS: ClassVar[dict[str, str]] = {
		'--with-crates': 'with_crates',
		'--without-crates': 'without_crates',
		'--with-types': 'with_types',
		'--without-types': 'without_types',
	}
	with_crates: tuple[str, ...] | None = None
	without_crates: tuple[str, ...] | None = None
	with_types: tuple[str, ...] | None = None
	without_types: tuple[str, ...] | None = None


@dataclass(frozen=True)
class Wait(Command):
	"""Batch directive `wait:<seconds>`: sleep between commands."""

	NAME = 'wait'
	seconds: float = 0.0


@dataclass(frozen=True)
class Raw(Command):
	"""Direct method call: `<method> [json params]`.

	Its text form is not guaranteed to re-parse identically, since params that
	are not valid JSON are sent as a plain string.
	"""

	NAME = 'raw'
	args: tuple[str, ...] = field(default_factory=tuple)


COMMAND_TABLE: dict[str, type[Command]] = {
	cls.NAME: cls
	for cls in (
		List,
		Query,
		Get,
		Spawn,
		Destroy,
		Insert,
		Remove,
		Reparent,
		MutateComponent,
		ListEntities,
		ListEntity,
		ListResources,
		GetResource,
		InsertResource,
		RemoveResource,
		MutateResource,
		GetWatch,
		ListWatch,
		Screenshot,
		Shutdown,
		Ready,
		Methods,
		Schema,
	)
}
