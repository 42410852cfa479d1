"""Environment-driven configuration.

Values are re-read from the environment on every attribute access so that a
long-lived CONFIG object always reflects the current process environment.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


class FlatEnvConfig(BaseModel):
	"""All BRP_* environment variables, validated."""

	BRP_LOGGING_LEVEL: str = 'warning'
	BRP_HOST: str = 'localhost'
	BRP_SESSION_DIR: str = ''
	BRP_REQUEST_TIMEOUT: float = Field(default=30.0, gt=0)

	@field_validator('BRP_LOGGING_LEVEL')
	@classmethod
	def _normalize_level(cls, value: str) -> str:
		return value.strip().lower() or 'warning'


class Config:
	"""Attribute access to the validated environment.

	Usage:
	    from brp_cli.config import CONFIG
	    CONFIG.BRP_HOST
	    CONFIG.session_dir
	"""

	def _load(self) -> FlatEnvConfig:
		values = {name: os.environ[name] for name in FlatEnvConfig.model_fields if os.environ.get(name)}
		return FlatEnvConfig.model_validate(values)

	def __getattr__(self, name: str):
		if name in FlatEnvConfig.model_fields:
			return getattr(self._load(), name)
		raise AttributeError(f'{type(self).__name__!r} has no attribute {name!r}')

	@property
	def session_dir(self) -> Path:
		"""Directory holding detached-session descriptors and log files."""
		configured = self._load().BRP_SESSION_DIR
		return Path(configured) if configured else Path(tempfile.gettempdir())


CONFIG = Config()
