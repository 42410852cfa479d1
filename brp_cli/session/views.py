from pathlib import Path

from pydantic import BaseModel, Field


class SessionInfo(BaseModel):
	"""On-disk descriptor of a detached session, one file per port"""

	pid: int
	port: int
	log_file: Path
	# Seconds since the epoch
	start_time: float
	app_binary: str


class DetachedSession(BaseModel):
	pid: int
	port: int
	log_file: Path


class SessionReport(BaseModel):
	"""Liveness of a detached session as seen by a later invocation.

	`process_alive` and `app_running` are checked independently: a descriptor can
	outlive its process, and a live process can briefly fail the network probe.
	"""

	app_running: bool
	port: int
	process_alive: bool | None = None
	pid: int | None = None
	log_file: Path | None = None
	app_binary: str | None = None
	start_time: float | None = None
	uptime_seconds: int | None = None
	uptime_formatted: str | None = None
	message: str | None = None


class CleanupReport(BaseModel):
	removed: list[str] = Field(default_factory=list)
	preserved: list[str] = Field(default_factory=list)
	errors: list[str] = Field(default_factory=list)
	active_sessions: list[SessionInfo] = Field(default_factory=list)

	@property
	def is_empty(self) -> bool:
		return not (self.removed or self.preserved or self.errors)


def format_duration(seconds: int) -> str:
	"""Render seconds as `1h 2m 3s`, `2m 3s` or `3s`."""
	hours, rest = divmod(seconds, 3600)
	minutes, secs = divmod(rest, 60)
	if hours:
		return f'{hours}h {minutes}m {secs}s'
	if minutes:
		return f'{minutes}m {secs}s'
	return f'{secs}s'
