"""Tests for the incremental Server-Sent-Events decoder."""

import pytest

from brp_cli.exceptions import SSEDecodeError
from brp_cli.rpc.sse import SSEDecoder, decode_sse_stream

STREAM = (
	b'event: update\n'
	b'id: 1\n'
	b'data: {"jsonrpc": "2.0", "id": 1, "result": {"name": "caf\xc3\xa9"}}\n'
	b'\n'
	b'retry: 100\r\n'
	b'data: {"jsonrpc": "2.0", "id": 1, "result": [1, 2, 3]}\r\n'
	b'\r\n'
	b'data: [true, null]\n'
)


def decode_all(chunks: list[bytes]) -> list:
	decoder = SSEDecoder()
	items = []
	for chunk in chunks:
		items.extend(decoder.feed(chunk))
	items.extend(decoder.finish())
	return items


def test_single_chunk():
	assert decode_all([STREAM]) == [
		{'jsonrpc': '2.0', 'id': 1, 'result': {'name': 'café'}},
		{'jsonrpc': '2.0', 'id': 1, 'result': [1, 2, 3]},
		[True, None],
	]


@pytest.mark.parametrize('size', [1, 2, 3, 7, 16, 64])
def test_chunk_boundaries_do_not_matter(size):
	"""Splitting anywhere, including inside the multi-byte é, gives the same payloads."""
	chunks = [STREAM[i : i + size] for i in range(0, len(STREAM), size)]
	assert decode_all(chunks) == decode_all([STREAM])


def test_payload_only_emitted_once_line_completes():
	decoder = SSEDecoder()
	assert decoder.feed(b'data: {"a": ') == []
	assert decoder.feed(b'1}') == []
	assert decoder.feed(b'\n') == [{'a': 1}]


def test_unterminated_trailing_line_is_dropped():
	decoder = SSEDecoder()
	assert decoder.feed(b'data: {"a": 1}\ndata: {"b"') == [{'a': 1}]
	assert decoder.finish() == []


def test_bad_json_fails_only_that_element():
	items = decode_all([b'data: {"a": 1}\ndata: not json\ndata: {"b": 2}\n'])
	assert items[0] == {'a': 1}
	assert isinstance(items[1], SSEDecodeError)
	assert items[2] == {'b': 2}


def test_invalid_utf8_is_reported_as_element():
	decoder = SSEDecoder()
	assert decoder.feed(b'data: {"a": 1}\n') == [{'a': 1}]
	items = decoder.feed(b'data: \xff\xfe\n')
	assert len(items) == 1
	assert isinstance(items[0], SSEDecodeError)
	assert decoder.feed(b'data: {"b": 2}\n') == [{'b': 2}]


def test_prefix_requires_space():
	assert decode_all([b'data:{"a": 1}\n']) == []


@pytest.mark.asyncio
async def test_decode_sse_stream_over_async_chunks():
	async def chunks():
		for i in range(0, len(STREAM), 5):
			yield STREAM[i : i + 5]

	items = [item async for item in decode_sse_stream(chunks())]
	assert items == decode_all([STREAM])
