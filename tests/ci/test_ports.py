"""Tests for port probing and random port selection."""

import random
import socket
import sys

import pytest

from brp_cli.exceptions import ProcessLifecycleError, ReadinessTimeoutError, RemoteConnectionError
from brp_cli.support.ports import (
	is_connection_error,
	is_port_available,
	is_port_connectable,
	pick_random_available_port,
	wait_for_port_connectable,
)


@pytest.fixture
def listening_socket():
	sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
	sock.bind(('127.0.0.1', 0))
	sock.listen(5)
	yield sock
	sock.close()


@pytest.mark.asyncio
async def test_free_port_is_available_and_not_connectable(unused_port):
	assert is_port_available(unused_port) is True
	assert await is_port_connectable(unused_port) is False


@pytest.mark.asyncio
async def test_listening_port_is_connectable_and_not_available(listening_socket):
	port = listening_socket.getsockname()[1]
	assert await is_port_connectable(port) is True
	assert is_port_available(port) is False


@pytest.mark.skipif(sys.platform == 'win32', reason='TIME_WAIT reuse differs on Windows')
def test_port_in_time_wait_is_available():
	"""A server-closed connection leaves TIME_WAIT behind, but nothing listens."""
	server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
	server.bind(('127.0.0.1', 0))
	server.listen(1)
	port = server.getsockname()[1]

	client = socket.create_connection(('127.0.0.1', port))
	conn, _ = server.accept()
	conn.close()
	client.recv(1)
	client.close()
	server.close()

	assert is_port_available(port) is True


@pytest.mark.asyncio
async def test_wait_for_port_connectable_returns_once_listening(listening_socket):
	port = listening_socket.getsockname()[1]
	await wait_for_port_connectable(port, timeout=1.0)


@pytest.mark.asyncio
async def test_wait_for_port_connectable_reports_failed_start(unused_port):
	with pytest.raises(ReadinessTimeoutError, match='The app may have failed to start'):
		await wait_for_port_connectable(unused_port, timeout=0.2)


@pytest.mark.asyncio
async def test_wait_for_port_connectable_reports_port_in_use(monkeypatch, unused_port):
	"""Bound-but-unreachable is reported as a port conflict."""

	async def never_connectable(port, timeout=1.0):
		return False

	monkeypatch.setattr('brp_cli.support.ports.is_port_connectable', never_connectable)
	monkeypatch.setattr('brp_cli.support.ports.is_port_available', lambda port: False)

	with pytest.raises(ReadinessTimeoutError, match=f'Port {unused_port} is already in use'):
		await wait_for_port_connectable(unused_port, timeout=0.2)


@pytest.mark.parametrize(
	'text',
	[
		'Connection refused (os error 111)',
		'tcp connect error',
		'error sending request for url (http://localhost:15702/)',
		'No route to host',
		'All connection attempts failed',
	],
)
def test_connection_error_markers(text):
	assert is_connection_error(text)
	assert is_connection_error(RuntimeError(text))


def test_remote_connection_error_is_classified():
	assert is_connection_error(RemoteConnectionError('http://localhost:1/', 'boom'))


def test_other_errors_are_not_connection_errors():
	assert not is_connection_error('Remote error [-32601]: Method not found')
	assert not is_connection_error(ValueError('bad json'))


def test_pick_random_port_skips_occupied_ports(monkeypatch):
	occupied = {15800, 15801}
	candidates = iter([15800, 15801, 15802])

	class FixedRandom(random.Random):
		def randint(self, a, b):
			return next(candidates)

	monkeypatch.setattr('brp_cli.support.ports.is_port_available', lambda port: port not in occupied)
	assert pick_random_available_port(15703, 16702, 50, rng=FixedRandom()) == 15802


def test_pick_random_port_stays_in_range(monkeypatch):
	monkeypatch.setattr('brp_cli.support.ports.is_port_available', lambda port: True)
	rng = random.Random(1234)
	for _ in range(100):
		assert 15703 <= pick_random_available_port(15703, 16702, 50, rng=rng) <= 16702


def test_pick_random_port_gives_up(monkeypatch):
	monkeypatch.setattr('brp_cli.support.ports.is_port_available', lambda port: False)
	with pytest.raises(ProcessLifecycleError, match='after 50 attempts'):
		pick_random_available_port(15703, 16702, 50)
