import logging

import psutil

logger = logging.getLogger(__name__)


def is_process_alive(pid: int) -> bool:
	"""Check the OS process table for a running (non-zombie) process."""
	try:
		proc = psutil.Process(pid)
		return proc.status() != psutil.STATUS_ZOMBIE
	except (psutil.NoSuchProcess, psutil.ZombieProcess):
		return False
	except psutil.AccessDenied:
		# Exists, but owned by someone else
		return True


def ensure_terminated(pid: int, timeout: float = 5.0) -> None:
	"""Make sure `pid` is not running. A process that is already gone counts as success."""
	try:
		proc = psutil.Process(pid)
		proc.kill()
		proc.wait(timeout=timeout)
	except psutil.NoSuchProcess:
		pass
	except psutil.TimeoutExpired:
		logger.warning(f'Process {pid} did not exit within {timeout}s of SIGKILL')
