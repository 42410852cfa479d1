from brp_cli.session.detached import (
	cleanup_all_logs,
	get_session_info,
	get_session_info_path,
	get_session_log_path,
	get_session_prefix,
	start_detached,
)
from brp_cli.session.managed import ManagedApp, pick_managed_port, run_managed
from brp_cli.session.views import CleanupReport, DetachedSession, SessionInfo, SessionReport, format_duration

__all__ = [
	'ManagedApp',
	'pick_managed_port',
	'run_managed',
	'start_detached',
	'get_session_info',
	'cleanup_all_logs',
	'get_session_prefix',
	'get_session_info_path',
	'get_session_log_path',
	'SessionInfo',
	'DetachedSession',
	'SessionReport',
	'CleanupReport',
	'format_duration',
]
