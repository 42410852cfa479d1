"""Incremental Server-Sent-Events decoder.

Only `data: ` lines are of interest: each one carries a JSON document. Other
fields (event, id, retry) and blank lines are dropped. Input may be split at
any byte boundary, so bytes are decoded incrementally and lines are buffered
until their terminator arrives.
"""

import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from brp_cli.exceptions import SSEDecodeError

DATA_PREFIX = 'data: '


class SSEDecoder:
	"""Turns chunks of bytes into decoded JSON payloads.

	`feed()` and `finish()` return a list whose items are either a decoded
	payload or an SSEDecodeError for an element that could not be decoded.
	"""

	def __init__(self) -> None:
		self._buffer = ''
		self._utf8 = codecs.getincrementaldecoder('utf-8')(errors='strict')

	def feed(self, chunk: bytes) -> list[Any]:
		try:
			self._buffer += self._utf8.decode(chunk)
		except UnicodeDecodeError as e:
			self._utf8.reset()
			return [SSEDecodeError(f'Invalid UTF-8: {e}')]
		return self._drain()

	def finish(self) -> list[Any]:
		"""Flush at end of stream. An unterminated trailing fragment is discarded."""
		items: list[Any] = []
		try:
			self._buffer += self._utf8.decode(b'', final=True)
		except UnicodeDecodeError as e:
			items.append(SSEDecodeError(f'Invalid UTF-8: {e}'))
		items.extend(self._drain())
		return items

	def _drain(self) -> list[Any]:
		items: list[Any] = []
		while (line_end := self._buffer.find('\n')) != -1:
			line = self._buffer[:line_end].rstrip('\r')
			self._buffer = self._buffer[line_end + 1 :]

			if not line.startswith(DATA_PREFIX):
				continue
			data = line[len(DATA_PREFIX) :]
			try:
				items.append(json.loads(data))
			except json.JSONDecodeError as e:
				items.append(SSEDecodeError(f'Failed to parse JSON: {e}'))
		return items


async def decode_sse_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[Any]:
	"""Lazily decode an async byte stream into payloads (or SSEDecodeError items)."""
	decoder = SSEDecoder()
	async for chunk in chunks:
		for item in decoder.feed(chunk):
			yield item
	for item in decoder.finish():
		yield item
