"""Port availability and connectivity probes."""

import asyncio
import random
import socket
import sys

from brp_cli.constants import POLL_INTERVAL_MS
from brp_cli.exceptions import ProcessLifecycleError, ReadinessTimeoutError
from brp_cli.support.polling import poll_until_ready

_CONNECTION_ERROR_MARKERS = (
	'Connection refused',
	'tcp connect error',
	'error sending request',
	'No route to host',
	'All connection attempts failed',
)


def is_connection_error(error: BaseException | str) -> bool:
	"""Check whether an error means nothing is listening (as opposed to an app that is up but failing)."""
	text = error if isinstance(error, str) else str(error)
	return any(marker in text for marker in _CONNECTION_ERROR_MARKERS)


def is_port_available(port: int) -> bool:
	"""Return True if 127.0.0.1:port can be bound right now.

	The probe socket is closed again immediately. Connections lingering in
	TIME_WAIT do not count as the port being in use.
	"""
	with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
		if sys.platform != 'win32':
			# On Windows this would let the probe bind over a live listener
			sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		try:
			sock.bind(('127.0.0.1', port))
			sock.listen(1)
		except OSError:
			return False
	return True


async def is_port_connectable(port: int, timeout: float = 1.0) -> bool:
	"""Return True if something accepts TCP connections on 127.0.0.1:port."""
	try:
		_, writer = await asyncio.wait_for(asyncio.open_connection('127.0.0.1', port), timeout=timeout)
	except (OSError, TimeoutError):
		return False
	writer.close()
	try:
		await writer.wait_closed()
	except OSError:
		pass
	return True


async def wait_for_port_connectable(port: int, timeout: float) -> None:
	"""Wait until the port accepts connections.

	On timeout the port is probed once more to tell a crashed app apart from a
	port held by some other process.
	"""

	async def _check() -> bool:
		return await is_port_connectable(port)

	try:
		await poll_until_ready(
			_check,
			timeout=timeout,
			interval=POLL_INTERVAL_MS / 1000,
			timeout_message=f'Timeout waiting for app to start on port {port}',
		)
	except ReadinessTimeoutError:
		if is_port_available(port):
			raise ReadinessTimeoutError(
				f'Timeout waiting for app to start on port {port}. The app may have failed to start.'
			) from None
		raise ReadinessTimeoutError(
			f'Port {port} is already in use by another process. Use -p/--port to specify a different port.'
		) from None


def pick_random_available_port(
	min_port: int,
	max_port: int,
	attempts: int,
	rng: random.Random | None = None,
) -> int:
	"""Pick a bindable port from [min_port, max_port], trying at most `attempts` candidates."""
	rng = rng or random.Random()
	for _ in range(attempts):
		port = rng.randint(min_port, max_port)
		if is_port_available(port):
			return port
	raise ProcessLifecycleError(f'Could not find an available port after {attempts} attempts')
