"""Client for controlling apps remotely over JSON-RPC/HTTP."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from brp_cli.config import CONFIG
from brp_cli.constants import (
	BEVY_DESTROY,
	BEVY_GET,
	BEVY_INSERT,
	BEVY_INSERT_RESOURCE,
	BEVY_LIST,
	BEVY_MUTATE_COMPONENT,
	BEVY_MUTATE_RESOURCE,
	BEVY_QUERY,
	BEVY_REMOVE,
	BEVY_SPAWN,
	BRP_TOOL_SCREENSHOT,
	BRP_TOOL_SHUTDOWN,
	LIVENESS_METHOD,
)
from brp_cli.exceptions import BrpError, CommandParseError, RemoteConnectionError, RemoteError, RemoteHTTPError
from brp_cli.rpc.sse import decode_sse_stream
from brp_cli.rpc.views import RpcErrorObject, RpcRequest
from brp_cli.support.ports import is_connection_error

logger = logging.getLogger(__name__)


class EventStream:
	"""Single-pass async iterator over the payloads of one SSE response.

	Closing the stream (explicitly, via `async with`, or by breaking out and
	calling `aclose()`) releases the HTTP connection. There is no replay.
	"""

	def __init__(self, response: httpx.Response, client: httpx.AsyncClient):
		self._response = response
		self._client = client
		self._events = decode_sse_stream(response.aiter_bytes())
		self.closed = False

	def __aiter__(self) -> AsyncIterator[Any]:
		return self

	async def __anext__(self) -> Any:
		if self.closed:
			raise StopAsyncIteration
		try:
			return await self._events.__anext__()
		except httpx.TransportError as e:
			await self.aclose()
			raise RemoteConnectionError(str(self._response.url), e) from e

	async def aclose(self) -> None:
		if self.closed:
			return
		self.closed = True
		try:
			await self._events.aclose()
		finally:
			await self._response.aclose()
			await self._client.aclose()

	async def __aenter__(self) -> 'EventStream':
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()


class RemoteClient:
	"""Sends remote control commands to a running app.

	Every call builds a JSON-RPC 2.0 envelope with a fresh id and POSTs it to
	`http://<host>:<port>/`. No retries happen here; callers poll through
	`poll_until_ready` when they need to wait for an app.
	"""

	def __init__(self, port: int, host: str | None = None, timeout: float | None = None):
		self.port = port
		self.host = host or CONFIG.BRP_HOST
		self.timeout = timeout if timeout is not None else CONFIG.BRP_REQUEST_TIMEOUT
		self.base_url = f'http://{self.host}:{port}/'

	def __repr__(self) -> str:
		return f'RemoteClient(port={self.port}, base_url={self.base_url!r})'

	async def request(self, method: str, params: Any = None) -> Any:
		"""Send a JSON-RPC request and return its `result` member.

		Raises:
			RemoteConnectionError: The app could not be reached
			RemoteError: The app answered with a JSON-RPC error object
		"""
		envelope = RpcRequest(method=method, params=params)
		logger.debug(f'-> {method} (id={envelope.id})')

		try:
			async with httpx.AsyncClient(timeout=self.timeout) as client:
				response = await client.post(self.base_url, json=envelope.to_payload())
		except httpx.TransportError as e:
			raise RemoteConnectionError(self.base_url, e) from e

		try:
			body = response.json()
		except (json.JSONDecodeError, UnicodeDecodeError) as e:
			raise BrpError(f'Invalid JSON-RPC response (HTTP {response.status_code}): {response.text[:200]}') from e

		if not isinstance(body, dict):
			raise BrpError(f'Invalid JSON-RPC response: {body!r}')

		error = body.get('error')
		if error is not None:
			if isinstance(error, dict):
				err = RpcErrorObject.model_validate(error)
				raise RemoteError(err.code, err.message, err.data)
			raise BrpError(f'Remote error: {error}')

		logger.debug(f'<- {method} (id={envelope.id}) ok')
		return body.get('result')

	async def stream_request(self, method: str, params: Any = None) -> EventStream:
		"""Send a streaming JSON-RPC request and return the decoded event stream.

		Raises:
			RemoteConnectionError: The app could not be reached
			RemoteHTTPError: The response status was not 2xx
		"""
		envelope = RpcRequest(method=method, params=params)
		logger.debug(f'-> {method} (id={envelope.id}, streaming)')

		# Streams stay open indefinitely: only the connect phase is bounded
		client = httpx.AsyncClient(timeout=httpx.Timeout(None, connect=self.timeout))
		request = client.build_request('POST', self.base_url, json=envelope.to_payload())
		try:
			response = await client.send(request, stream=True)
		except httpx.TransportError as e:
			await client.aclose()
			raise RemoteConnectionError(self.base_url, e) from e

		if not response.is_success:
			try:
				body = (await response.aread()).decode('utf-8', errors='replace') or 'Unknown error'
			finally:
				await response.aclose()
				await client.aclose()
			raise RemoteHTTPError(response.status_code, body)

		return EventStream(response, client)

	async def is_ready(self) -> bool:
		"""Check whether the app answers a lightweight call.

		Connection errors propagate (nothing is running). Any other failure means
		the app is up but not ready yet, and yields False.
		"""
		try:
			await self.request(LIVENESS_METHOD)
		except BrpError as e:
			if is_connection_error(e):
				raise
			logger.debug(f'App on port {self.port} not ready: {e}')
			return False
		return True

	# Convenience wrappers

	async def list_components(self, entity: int | None = None) -> Any:
		return await self.request(BEVY_LIST, {'entity': entity} if entity is not None else None)

	async def query_entities(self, components: list[str]) -> Any:
		return await self.request(BEVY_QUERY, {'data': {'components': components}})

	async def get_component(self, entity: int, component: str) -> Any:
		return await self.request(BEVY_GET, {'entity': entity, 'components': [component]})

	async def list_entity(self, entity: int) -> dict[str, Any]:
		"""All component data present on one entity.

		There is no single method for this: every registered component type is
		fetched in turn and the ones the entity lacks are skipped. An entity
		with no readable components is confirmed to exist with a query per type.
		"""
		component_types = [name for name in (await self.list_components() or []) if isinstance(name, str)]

		components: dict[str, Any] = {}
		for component_type in component_types:
			try:
				result = await self.get_component(entity, component_type)
			except RemoteError as e:
				logger.debug(f'Skipping {component_type} on entity {entity}: {e}')
				continue
			data = (result or {}).get('components', {}).get(component_type)
			if data is not None:
				components[component_type] = data

		if not components and not await self._entity_exists(entity, component_types):
			raise BrpError(f'Entity {entity} does not exist')

		return {'entity': entity, 'generation': entity >> 32, 'components': components}

	async def _entity_exists(self, entity: int, component_types: list[str]) -> bool:
		for component_type in component_types:
			try:
				rows = await self.query_entities([component_type])
			except RemoteError:
				continue
			if any(isinstance(row, dict) and row.get('entity') == entity for row in rows or []):
				return True
		return False

	async def spawn_entity(self, components: dict[str, Any]) -> Any:
		return await self.request(BEVY_SPAWN, {'components': components})

	async def destroy_entity(self, entity: int) -> Any:
		return await self.request(BEVY_DESTROY, {'entity': entity})

	async def insert_component(self, entity: int, component: str, data: Any) -> Any:
		return await self.request(BEVY_INSERT, {'entity': entity, 'components': {component: data}})

	async def remove_component(self, entity: int, component: str) -> Any:
		return await self.request(BEVY_REMOVE, {'entity': entity, 'components': [component]})

	async def mutate_component(self, entity: int, component: str, patch: Any) -> Any:
		"""Apply each top-level field of `patch` as its own mutation, returning the last result."""
		if not isinstance(patch, dict):
			raise CommandParseError('Patch must be a JSON object with field names and values')
		result = None
		for path, value in patch.items():
			result = await self.request(
				BEVY_MUTATE_COMPONENT,
				{'entity': entity, 'component': component, 'path': path, 'value': value},
			)
		return result

	async def insert_resource(self, resource: str, data: Any) -> Any:
		return await self.request(BEVY_INSERT_RESOURCE, {'resource': resource, 'value': data})

	async def mutate_resource(self, resource: str, patch: Any) -> Any:
		if not isinstance(patch, dict):
			raise CommandParseError('Patch must be a JSON object with field names and values')
		result = None
		for path, value in patch.items():
			result = await self.request(BEVY_MUTATE_RESOURCE, {'resource': resource, 'path': path, 'value': value})
		return result

	async def take_screenshot(self, path: str) -> Any:
		return await self.request(BRP_TOOL_SCREENSHOT, {'path': path})

	async def shutdown(self) -> Any:
		return await self.request(BRP_TOOL_SHUTDOWN, {})
