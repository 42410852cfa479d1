"""JSON-RPC 2.0 over HTTP, plus Server-Sent-Events streaming."""

from brp_cli.rpc.client import EventStream, RemoteClient
from brp_cli.rpc.sse import SSEDecoder, decode_sse_stream
from brp_cli.rpc.views import RpcErrorObject, RpcRequest, generate_request_id

__all__ = [
	'RemoteClient',
	'EventStream',
	'SSEDecoder',
	'decode_sse_stream',
	'RpcRequest',
	'RpcErrorObject',
	'generate_request_id',
]
