"""Wire models for JSON-RPC 2.0 requests and errors"""

import time
from typing import Any, Literal

from pydantic import BaseModel, Field


def generate_request_id() -> int:
	"""Request id from the wall clock in microseconds.

	A clock reading rather than a counter, so read-only calls such as readiness
	checks need no mutable client state.
	"""
	return time.time_ns() // 1000


class RpcRequest(BaseModel):
	"""JSON-RPC 2.0 request envelope"""

	jsonrpc: Literal['2.0'] = '2.0'
	method: str
	id: int = Field(default_factory=generate_request_id)
	params: Any = None

	def to_payload(self) -> dict[str, Any]:
		return self.model_dump(mode='json')


class RpcErrorObject(BaseModel):
	"""The `error` member of a JSON-RPC response"""

	code: int = 0
	message: str = 'Unknown error'
	data: Any = None
