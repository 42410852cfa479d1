"""Run parsed commands against a live app."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from brp_cli.commands.parsing import parse_command_string
from brp_cli.commands.views import (
	Command,
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
from brp_cli.constants import (
	APP_READY_TIMEOUT_SECS,
	BEVY_GET_RESOURCE,
	BEVY_GET_WATCH,
	BEVY_LIST_RESOURCES,
	BEVY_LIST_WATCH,
	BEVY_REGISTRY_SCHEMA,
	BEVY_REMOVE_RESOURCE,
	BEVY_REPARENT,
	DEFAULT_REMOTE_PORT,
	LIST_ENTITIES_BATCH_SIZE,
	NEARBY_PORT_SCAN,
	POLL_INTERVAL_MS,
	RPC_DISCOVER,
)
from brp_cli.exceptions import BrpError, CommandParseError, RemoteConnectionError, SSEDecodeError
from brp_cli.rpc.client import EventStream, RemoteClient
from brp_cli.support.json import parse_json_object, parse_json_value, print_json
from brp_cli.support.polling import poll_until_ready

logger = logging.getLogger(__name__)

SCREENSHOT_TIMEOUT_SECS = 5.0


async def is_port_responsive(port: int) -> bool:
	"""True if an app answers protocol calls on `port`."""
	try:
		return await RemoteClient(port).is_ready()
	except BrpError:
		return False


async def detect_running_instances(requested_port: int) -> list[int]:
	"""Ports with a responsive app: the requested one, plus a few above the default when the default is requested."""
	running = []
	if await is_port_responsive(requested_port):
		running.append(requested_port)
	if requested_port == DEFAULT_REMOTE_PORT:
		for offset in range(1, NEARBY_PORT_SCAN + 1):
			if await is_port_responsive(DEFAULT_REMOTE_PORT + offset):
				running.append(DEFAULT_REMOTE_PORT + offset)
	return running


async def wait_for_app_ready(client: RemoteClient, timeout: float = APP_READY_TIMEOUT_SECS) -> None:
	"""Poll until the app answers, or fail with a hint on how to start one."""

	async def _check() -> bool:
		return await client.is_ready()

	await poll_until_ready(
		_check,
		timeout=timeout,
		interval=POLL_INTERVAL_MS / 1000,
		timeout_message=f'No app is running on port {client.port}. Start the app first or use --managed mode.',
	)


async def handle_stream_response(
	stream: EventStream,
	label: str,
	interrupt: asyncio.Event | None = None,
) -> None:
	"""Print stream events until the stream ends, an element fails, or the user interrupts.

	Every event wait is raced against `interrupt` (by default set on Ctrl+C).
	Whichever way the loop ends, the stream is closed and its connection released.
	"""
	print(f'Streaming component changes for {label} (press Ctrl+C to stop):')
	print('[Waiting for updates... Press Ctrl+C to stop]\n', flush=True)

	loop = asyncio.get_running_loop()
	installed_handler = False
	if interrupt is None:
		interrupt = asyncio.Event()
		try:
			loop.add_signal_handler(signal.SIGINT, interrupt.set)
			installed_handler = True
		except (NotImplementedError, RuntimeError):
			# Windows, or not on the main thread
			pass

	interrupted = asyncio.ensure_future(interrupt.wait())
	try:
		while True:
			next_event = asyncio.ensure_future(stream.__anext__())
			done, _ = await asyncio.wait({next_event, interrupted}, return_when=asyncio.FIRST_COMPLETED)

			if next_event not in done:
				next_event.cancel()
				try:
					await next_event
				except (asyncio.CancelledError, StopAsyncIteration, BrpError):
					pass
				print('\n[Stream interrupted by user]')
				break

			try:
				item = next_event.result()
			except StopAsyncIteration:
				print('[Stream ended]')
				break

			if isinstance(item, SSEDecodeError):
				print(f'Stream error: {item}', file=sys.stderr)
				break
			print_json(item)
			print()
	finally:
		interrupted.cancel()
		if installed_handler:
			loop.remove_signal_handler(signal.SIGINT)
		await stream.aclose()


async def _wait_for_file(path: Path, timeout: float) -> bool:
	async def _check() -> bool:
		return path.exists() and path.stat().st_size > 0

	try:
		await poll_until_ready(_check, timeout=timeout, interval=0.1, timeout_message='')
	except BrpError:
		return False
	return True


async def list_all_entities(client: RemoteClient) -> dict[str, Any]:
	"""Every entity with the names of its components, sorted by entity ID.

	One `bevy/query` per component type, issued concurrently in batches.
	A type whose query fails is left out.
	"""
	component_types = [name for name in (await client.list_components() or []) if isinstance(name, str)]

	entity_components: dict[int, list[str]] = {}
	for start in range(0, len(component_types), LIST_ENTITIES_BATCH_SIZE):
		batch = component_types[start : start + LIST_ENTITIES_BATCH_SIZE]
		results = await asyncio.gather(
			*(client.query_entities([component_type]) for component_type in batch), return_exceptions=True
		)
		for component_type, rows in zip(batch, results):
			if isinstance(rows, BaseException):
				if not isinstance(rows, BrpError):
					raise rows
				logger.debug(f'Query for {component_type} failed: {rows}')
				continue
			for row in rows or []:
				entity = row.get('entity') if isinstance(row, dict) else None
				if isinstance(entity, int):
					entity_components.setdefault(entity, []).append(component_type)

	entities = [
		{'entity': entity, 'generation': entity >> 32, 'components': names}
		for entity, names in sorted(entity_components.items())
	]
	return {'entities': entities, 'total_count': len(entities)}


async def execute_command(client: RemoteClient, command: Command) -> None:
	"""Execute one command and print its result as JSON."""
	if isinstance(command, Wait):
		print(f'Waiting {command.seconds:g} seconds...', flush=True)
		await asyncio.sleep(command.seconds)
		return

	if not isinstance(command, Ready):
		await wait_for_app_ready(client)

	result: Any
	if isinstance(command, List):
		result = await client.list_components()
	elif isinstance(command, Query):
		result = await client.query_entities(list(command.components))
	elif isinstance(command, Get):
		result = await client.get_component(command.entity, command.component)
		# Unwrap to just the component data when present
		components = result.get('components') if isinstance(result, dict) else None
		if isinstance(components, dict) and command.component in components:
			result = components[command.component]
	elif isinstance(command, Spawn):
		result = await client.spawn_entity(parse_json_object(command.components, 'spawn'))
	elif isinstance(command, Destroy):
		result = await client.destroy_entity(command.entity)
	elif isinstance(command, Insert):
		for component, data in parse_json_object(command.components, 'insert').items():
			print_json(await client.insert_component(command.entity, component, data))
		return
	elif isinstance(command, Remove):
		result = await client.remove_component(command.entity, command.component)
	elif isinstance(command, Reparent):
		parent = None if command.parent == 'null' else parse_json_value(command.parent, 'reparent')
		if parent is not None and not isinstance(parent, int):
			raise CommandParseError(f"reparent: parent must be an entity ID or 'null', got '{command.parent}'")
		result = await client.request(BEVY_REPARENT, {'entities': [command.child], 'parent': parent})
	elif isinstance(command, MutateComponent):
		result = await client.mutate_component(
			command.entity, command.component, parse_json_value(command.patch, 'mutate_component')
		)
	elif isinstance(command, ListEntities):
		result = await list_all_entities(client)
	elif isinstance(command, ListEntity):
		result = await client.list_entity(command.entity)
	elif isinstance(command, ListResources):
		result = await client.request(BEVY_LIST_RESOURCES)
	elif isinstance(command, GetResource):
		result = await client.request(BEVY_GET_RESOURCE, {'resource': command.resource})
	elif isinstance(command, InsertResource):
		for resource, data in parse_json_object(command.data, 'insert_resource').items():
			print_json(await client.insert_resource(resource, data))
		return
	elif isinstance(command, RemoveResource):
		result = await client.request(BEVY_REMOVE_RESOURCE, {'resource': command.resource})
	elif isinstance(command, MutateResource):
		result = await client.mutate_resource(command.resource, parse_json_value(command.patch, 'mutate_resource'))
	elif isinstance(command, GetWatch):
		stream = await client.stream_request(
			BEVY_GET_WATCH, {'entity': command.entity, 'components': list(command.components)}
		)
		await handle_stream_response(stream, f'entity {command.entity}')
		return
	elif isinstance(command, ListWatch):
		stream = await client.stream_request(BEVY_LIST_WATCH, {'entity': command.entity})
		await handle_stream_response(stream, f'entity {command.entity}')
		return
	elif isinstance(command, Screenshot):
		result = await client.take_screenshot(command.path)
		written = await _wait_for_file(Path(command.path), SCREENSHOT_TIMEOUT_SECS)
		if not written:
			raise BrpError(f'Screenshot file was not written within {SCREENSHOT_TIMEOUT_SECS:g} seconds')
		if isinstance(result, dict):
			result = {**result, 'file_written': True, 'note': 'Screenshot saved successfully.'}
	elif isinstance(command, Shutdown):
		result = await client.shutdown()
	elif isinstance(command, Ready):
		try:
			ready = await client.is_ready()
		except RemoteConnectionError:
			ready = False
		message = 'App is ready and responding to BRP commands' if ready else 'App is not responding to BRP commands'
		result = {'ready': ready, 'message': message}
	elif isinstance(command, Methods):
		result = await client.request(RPC_DISCOVER)
	elif isinstance(command, Schema):
		filters = {name: list(getattr(command, name)) for name in Schema.FLAGS.values() if getattr(command, name)}
		result = await client.request(BEVY_REGISTRY_SCHEMA, filters)
	elif isinstance(command, Raw):
		result = await _execute_raw(client, command)
	else:
		raise CommandParseError(f'Unsupported command: {command!r}')

	print_json(result)


async def _execute_raw(client: RemoteClient, command: Raw) -> Any:
	if not command.args:
		raise CommandParseError('Raw command requires at least a method name')
	method, rest = command.args[0], ' '.join(command.args[1:]).strip()
	params: Any = None
	if rest:
		try:
			params = parse_json_value(rest, method)
		except CommandParseError:
			# Not JSON: send as a plain string parameter
			params = rest
	return await client.request(method, params)


async def run_command_list(client: RemoteClient, commands: list[str]) -> None:
	"""Execute commands strictly in order, stopping at the first failure.

	Effects of commands that already ran are left in place.
	"""
	for text in commands:
		text = text.strip()
		if not text:
			continue
		print(f'\n=== Executing: {text} ===', flush=True)
		await execute_command(client, parse_command_string(text))
