"""Detached mode: persistent background sessions tracked through descriptor files.

Every session owns two files in the session directory, both named with the
shared `brp_session` prefix:

- `brp_session_port_<port>.json`, the descriptor (`SessionInfo`)
- `brp_session_<start ms>.log`, the app's combined stdout/stderr

No locking is done. Descriptor writes go through a rename so readers never see
a partial file, and staleness is always decided against the OS process table.
"""

import logging
import os
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from brp_cli.commands.execution import detect_running_instances
from brp_cli.config import CONFIG
from brp_cli.constants import (
	DETACHED_POLL_INTERVAL_MS,
	DETACHED_READY_TIMEOUT_SECS,
	PROJECT_ROOT_ENV,
	SESSION_PREFIX,
)
from brp_cli.discovery import AppDiscovery, ResolvedApp
from brp_cli.exceptions import ProcessLifecycleError, ReadinessTimeoutError, SessionError
from brp_cli.session.views import CleanupReport, DetachedSession, SessionInfo, SessionReport, format_duration
from brp_cli.support.polling import poll_until_ready
from brp_cli.support.process import ensure_terminated, is_process_alive

logger = logging.getLogger(__name__)


def get_session_prefix() -> str:
	return SESSION_PREFIX


def get_session_info_path(port: int) -> Path:
	return CONFIG.session_dir / f'{get_session_prefix()}_port_{port}.json'


def get_session_log_path(timestamp_ms: int) -> Path:
	return CONFIG.session_dir / f'{get_session_prefix()}_{timestamp_ms}.log'


def _write_log_header(log_file: Path, app: ResolvedApp, port: int) -> None:
	with open(log_file, 'w', encoding='utf-8') as f:
		f.write('=== BRP Tool Detached Session ===\n')
		f.write(f'Started at: {datetime.now().isoformat(timespec="seconds")}\n')
		f.write(f'Port: {port}\n')
		f.write(f'App binary: {app.binary_path}\n')
		f.write(f'Working directory: {app.working_dir}\n')
		f.write('============================================\n\n')


def _write_session_info(info: SessionInfo) -> Path:
	path = get_session_info_path(info.port)
	tmp_path = path.with_name(f'.{path.name}.{os.getpid()}.tmp')
	tmp_path.write_text(info.model_dump_json(indent=2), encoding='utf-8')
	os.replace(tmp_path, path)
	return path


def _read_session_info(path: Path) -> SessionInfo:
	try:
		return SessionInfo.model_validate_json(path.read_text(encoding='utf-8'))
	except (OSError, ValidationError) as e:
		raise SessionError(f'Failed to read session info from {path.name}: {e}') from e


def _spawn_detached(app: ResolvedApp, port: int, log_file: Path) -> subprocess.Popen:
	env = {**os.environ, PROJECT_ROOT_ENV: str(app.working_dir)}
	cmd = [str(app.binary_path), '--port', str(port)]
	with open(log_file, 'ab') as log:
		if sys.platform == 'win32':
			proc = subprocess.Popen(
				cmd,
				cwd=app.working_dir,
				env=env,
				creationflags=subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.DETACHED_PROCESS,
				stdin=subprocess.DEVNULL,
				stdout=log,
				stderr=subprocess.STDOUT,
			)
		else:
			proc = subprocess.Popen(
				cmd,
				cwd=app.working_dir,
				env=env,
				start_new_session=True,
				stdin=subprocess.DEVNULL,
				stdout=log,
				stderr=subprocess.STDOUT,
			)
	return proc


async def start_detached(
	app: str | None,
	port: int,
	profile: str | None,
	discovery: AppDiscovery | None = None,
	ready_timeout: float = DETACHED_READY_TIMEOUT_SECS,
) -> DetachedSession:
	"""Start the app in the background and record it as a session for `port`.

	The app keeps running after this invocation exits. If it does not answer on
	`port` within `ready_timeout`, it is killed and its log file removed.

	Raises:
		ProcessLifecycleError: The app could not be resolved or spawned
		ReadinessTimeoutError: The app did not become ready in time
	"""
	resolved = (discovery or AppDiscovery()).resolve(app, profile)

	session_dir = CONFIG.session_dir
	session_dir.mkdir(parents=True, exist_ok=True)
	log_file = get_session_log_path(time.time_ns() // 1_000_000)
	_write_log_header(log_file, resolved, port)

	try:
		proc = _spawn_detached(resolved, port, log_file)
	except OSError as e:
		log_file.unlink(missing_ok=True)
		raise ProcessLifecycleError(f'Failed to start app {resolved.binary_path}: {e}') from e
	pid = proc.pid
	logger.info(f'Started {resolved.name} in detached mode (pid={pid}), logging to {log_file}')

	async def _check() -> bool:
		return port in await detect_running_instances(port)

	try:
		await poll_until_ready(
			_check,
			timeout=ready_timeout,
			interval=DETACHED_POLL_INTERVAL_MS / 1000,
			timeout_message='Timeout waiting for app to start. Check log file for errors.',
		)
	except ReadinessTimeoutError:
		ensure_terminated(pid)
		proc.poll()
		log_file.unlink(missing_ok=True)
		raise

	# The app outlives this invocation and is never reaped here, so the handle
	# is marked finished before it is dropped
	proc.returncode = 0

	info = SessionInfo(pid=pid, port=port, log_file=log_file, start_time=time.time(), app_binary=resolved.name)
	_write_session_info(info)
	return DetachedSession(pid=pid, port=port, log_file=log_file)


async def get_session_info(port: int) -> SessionReport | None:
	"""Report on the session for `port`, or None if there is neither a descriptor nor a running app.

	A descriptor whose process is dead and whose app no longer answers is
	deleted as a side effect.
	"""
	path = get_session_info_path(port)
	if not path.exists():
		if port in await detect_running_instances(port):
			return SessionReport(
				app_running=True,
				port=port,
				message='App is running but no session info found (may have been started manually)',
			)
		return None

	info = _read_session_info(path)
	app_running = port in await detect_running_instances(port)
	process_alive = is_process_alive(info.pid)
	uptime = max(0, int(time.time() - info.start_time))

	if not app_running and not process_alive:
		logger.debug(f'Removing stale session info {path.name} (pid {info.pid} is gone)')
		path.unlink(missing_ok=True)

	return SessionReport(
		app_running=app_running,
		process_alive=process_alive,
		pid=info.pid,
		port=info.port,
		log_file=info.log_file,
		app_binary=info.app_binary,
		start_time=info.start_time,
		uptime_seconds=uptime,
		uptime_formatted=format_duration(uptime),
	)


def _is_session_file(path: Path) -> bool:
	return path.name.startswith(get_session_prefix()) and path.suffix in ('.log', '.json')


def cleanup_all_logs() -> CleanupReport:
	"""Delete every session file that does not belong to a live process.

	The first pass protects the descriptor and log file of every session whose
	process is alive; only then does the second pass delete.
	"""
	session_dir = CONFIG.session_dir
	report = CleanupReport()
	if not session_dir.is_dir():
		return report

	active: set[Path] = set()
	for path in sorted(session_dir.glob(f'{get_session_prefix()}*.json')):
		try:
			info = _read_session_info(path)
		except SessionError as e:
			logger.warning(str(e))
			continue
		if is_process_alive(info.pid):
			active.add(path)
			active.add(session_dir / info.log_file.name)
			report.active_sessions.append(info)

	for path in sorted(session_dir.iterdir()):
		if not path.is_file() or not _is_session_file(path):
			continue
		if path in active:
			report.preserved.append(path.name)
			continue
		try:
			path.unlink()
		except FileNotFoundError:
			# Removed concurrently by another invocation
			continue
		except OSError as e:
			report.errors.append(f'{path.name}: {e}')
			continue
		report.removed.append(path.name)

	return report
