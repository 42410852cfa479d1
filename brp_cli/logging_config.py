import logging
import sys

from brp_cli.config import CONFIG

_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def setup_logging(level: str | None = None) -> logging.Logger:
	"""Configure the brp_cli logger hierarchy.

	Safe to call repeatedly: the handler is only attached once, later calls just
	adjust the level.
	"""
	level_name = (level or CONFIG.BRP_LOGGING_LEVEL).upper()
	log_level = getattr(logging, level_name, logging.WARNING)

	root = logging.getLogger('brp_cli')
	if not any(getattr(h, '_brp_handler', False) for h in root.handlers):
		handler = logging.StreamHandler(sys.stderr)
		handler.setFormatter(logging.Formatter(_LOG_FORMAT))
		handler._brp_handler = True  # type: ignore[attr-defined]
		root.addHandler(handler)
		root.propagate = False

	root.setLevel(log_level)
	return root
