"""Stand-in for a Bevy app with the remote plugin enabled.

Run as `python fake_app.py --port N`. Serves JSON-RPC over HTTP on
127.0.0.1:N with a small in-memory world, including one streaming method.
"""

import argparse
import json
import sys
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

TRANSFORM = 'bevy_transform::components::transform::Transform'
NAME = 'bevy_ecs::name::Name'

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 16

# Longer than the 64 KiB line limit of an asyncio stream reader
LONG_LINE_LENGTH = 100_000


class World:
	def __init__(self):
		self.lock = threading.Lock()
		self.next_entity = 100
		self.entities = {
			42: {TRANSFORM: {'translation': [0.0, 0.0, 0.0]}, NAME: 'player'},
		}
		self.resources = {'my_game::Score': {'value': 0}}

	def call(self, method, params):
		with self.lock:
			if method == 'bevy/list':
				if params and 'entity' in params:
					return sorted(self._entity(params['entity']))
				return [TRANSFORM, NAME]
			if method == 'bevy/query':
				wanted = params['data']['components']
				return [
					{'entity': e, 'components': {c: comps[c] for c in wanted}}
					for e, comps in self.entities.items()
					if all(c in comps for c in wanted)
				]
			if method == 'bevy/get':
				comps = self._entity(params['entity'])
				return {'components': {c: comps[c] for c in params['components'] if c in comps}, 'errors': {}}
			if method == 'bevy/spawn':
				entity = self.next_entity
				self.next_entity += 1
				self.entities[entity] = dict(params['components'])
				return {'entity': entity}
			if method == 'bevy/destroy':
				self._entity(params['entity'])
				del self.entities[params['entity']]
				return None
			if method == 'bevy/insert':
				self._entity(params['entity']).update(params['components'])
				return None
			if method == 'bevy/remove':
				comps = self._entity(params['entity'])
				for c in params['components']:
					comps.pop(c, None)
				return None
			if method == 'bevy/mutate_component':
				comps = self._entity(params['entity'])
				comps[params['component']][params['path'].lstrip('.')] = params['value']
				return None
			if method == 'bevy/list_resources':
				return sorted(self.resources)
			if method == 'bevy/get_resource':
				return {'value': self.resources[params['resource']]}
			if method == 'bevy/insert_resource':
				self.resources[params['resource']] = params['value']
				return None
			if method == 'bevy/reparent':
				return None
			if method == 'bevy/registry/schema':
				filters = params or {}
				schemas = {}
				for type_path in [TRANSFORM, NAME, *self.resources]:
					crate = type_path.split('::')[0]
					if 'with_crates' in filters and crate not in filters['with_crates']:
						continue
					if crate in filters.get('without_crates', []):
						continue
					schemas[type_path] = {'typePath': type_path, 'crateName': crate}
				return schemas
			if method == 'rpc.discover':
				return {'openrpc': '1.3.2', 'methods': [{'name': 'bevy/list'}, {'name': 'bevy/get'}]}
			if method == 'brp_tool/screenshot':
				with open(params['path'], 'wb') as f:
					f.write(PNG_BYTES)
				return {'success': True, 'path': params['path']}
			if method == 'brp_tool/shutdown':
				return {'success': True, 'shutdown_method': 'clean_shutdown'}
		raise RpcFailure(-32601, f'Method not found: {method}')

	def _entity(self, entity):
		if entity not in self.entities:
			raise RpcFailure(-23401, f'Entity {entity} does not exist')
		return self.entities[entity]


class RpcFailure(Exception):
	def __init__(self, code, message):
		super().__init__(message)
		self.code = code
		self.message = message


class Handler(BaseHTTPRequestHandler):
	protocol_version = 'HTTP/1.1'

	def log_message(self, format, *args):
		print(f'request: {format % args}', file=sys.stderr, flush=True)

	def do_POST(self):
		length = int(self.headers.get('Content-Length', 0))
		request = json.loads(self.rfile.read(length))
		method = request.get('method')
		params = request.get('params')

		if method in ('bevy/get+watch', 'bevy/list+watch'):
			self._stream(request)
			return

		try:
			body = {'jsonrpc': '2.0', 'id': request.get('id'), 'result': self.server.world.call(method, params)}
		except RpcFailure as e:
			body = {'jsonrpc': '2.0', 'id': request.get('id'), 'error': {'code': e.code, 'message': e.message}}
		self._send_json(body)

		if method == 'brp_tool/shutdown':
			threading.Thread(target=self.server.shutdown, daemon=True).start()

	def _send_json(self, body):
		data = json.dumps(body).encode()
		self.send_response(200)
		self.send_header('Content-Type', 'application/json')
		self.send_header('Content-Length', str(len(data)))
		self.end_headers()
		self.wfile.write(data)

	def _stream(self, request):
		self.send_response(200)
		self.send_header('Content-Type', 'text/event-stream')
		self.send_header('Connection', 'close')
		self.end_headers()
		count = self.server.stream_events
		for i in range(count):
			event = {'jsonrpc': '2.0', 'id': request.get('id'), 'result': {'components': {NAME: f'update-{i}'}}}
			self.wfile.write(f'data: {json.dumps(event)}\n\n'.encode())
			self.wfile.flush()
			time.sleep(0.02)
		self.close_connection = True


def main():
	parser = argparse.ArgumentParser()
	parser.add_argument('--port', type=int, required=True)
	parser.add_argument('--stream-events', type=int, default=3)
	parser.add_argument('--noisy-startup', action='store_true', help='flood stdout with one very long line and many short ones before listening')
	args = parser.parse_args()

	if args.noisy_startup:
		print('x' * LONG_LINE_LENGTH, flush=True)
		for i in range(3000):
			print(f'startup line {i}')
		sys.stdout.flush()

	server = ThreadingHTTPServer(('127.0.0.1', args.port), Handler)
	server.daemon_threads = True
	server.world = World()
	server.stream_events = args.stream_events
	print(f'fake app listening on port {args.port}', flush=True)
	try:
		server.serve_forever()
	finally:
		server.server_close()
	print('fake app stopped', flush=True)


if __name__ == '__main__':
	main()
