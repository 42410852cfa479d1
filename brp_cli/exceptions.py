from typing import Any


class BrpError(Exception):
	"""Base class for every error raised by brp_cli."""


class RemoteConnectionError(BrpError):
	"""The target app could not be reached at all."""

	def __init__(self, url: str, cause: BaseException | str):
		self.url = url
		self.cause = cause
		super().__init__(f'error sending request for url ({url}): {cause}')


class RemoteError(BrpError):
	"""The app answered with a JSON-RPC error object."""

	def __init__(self, code: int, message: str, data: Any = None):
		self.code = code
		self.message = message
		self.data = data
		super().__init__(f'Remote error [{code}]: {message}')


class RemoteHTTPError(BrpError):
	def __init__(self, status_code: int, body: str):
		self.status_code = status_code
		self.body = body
		super().__init__(f'HTTP error {status_code}: {body}')


class ReadinessTimeoutError(BrpError):
	"""A readiness poll ran out of time."""


class ProcessLifecycleError(BrpError):
	"""Spawning, locating or supervising the target app failed."""


class SSEDecodeError(BrpError):
	"""One element of an event stream could not be decoded.

	Yielded in place of the payload, the stream itself keeps going.
	"""


class CommandParseError(BrpError, ValueError):
	pass


class SessionError(BrpError):
	"""A detached-session descriptor could not be read or parsed."""
