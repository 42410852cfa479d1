import asyncio
import logging
from collections.abc import Awaitable, Callable

from brp_cli.exceptions import ReadinessTimeoutError

logger = logging.getLogger(__name__)


async def poll_until_ready(
	check: Callable[[], Awaitable[object]],
	timeout: float,
	interval: float,
	timeout_message: str,
) -> None:
	"""Call `check` every `interval` seconds until it succeeds or `timeout` elapses.

	A check fails by raising or by returning False; every failure is treated the
	same way and polling continues. The interval is fixed, callers that want
	backoff grow it themselves between calls.

	Args:
		check: Zero-argument coroutine function
		timeout: Total time budget in seconds
		interval: Delay before each attempt in seconds
		timeout_message: Message of the ReadinessTimeoutError raised on timeout

	Raises:
		ReadinessTimeoutError: If no attempt succeeded in time
	"""

	async def _loop() -> None:
		attempt = 0
		while True:
			await asyncio.sleep(interval)
			attempt += 1
			try:
				if await check() is not False:
					return
			except Exception as e:
				logger.debug(f'Readiness check attempt {attempt} failed: {e}')

	try:
		await asyncio.wait_for(_loop(), timeout=timeout)
	except TimeoutError:
		raise ReadinessTimeoutError(timeout_message) from None
