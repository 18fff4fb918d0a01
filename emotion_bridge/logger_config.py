"""
Logging setup for the bridge service.

Console only; request-level records go to the CSV request log kept by the
HTTP layer, this is for diagnostics (model load, startup, failures).

Usage:
    from emotion_bridge.logger_config import configure_logging

    configure_logging(level="INFO", json_format=False)
"""

import json
import logging
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
	"""Structured JSON log formatter for production monitoring."""

	def format(self, record):
		log_entry = {
			"timestamp": datetime.now(timezone.utc).isoformat(),
			"level": record.levelname,
			"logger": record.name,
			"message": record.getMessage(),
		}
		if hasattr(record, "extra_fields"):
			log_entry.update(record.extra_fields)
		if record.exc_info:
			log_entry["exception"] = self.formatException(record.exc_info)
		return json.dumps(log_entry)


def configure_logging(level: str = "INFO", json_format: bool = False, show_timestamps: bool = True):
	"""
	Configure the root logger.

	Args:
		level: Minimum log level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
		json_format: Use structured JSON lines instead of plain text
		show_timestamps: Include timestamps in plain output
	"""
	if json_format:
		formatter = JSONFormatter()
	else:
		fmt = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s"
		if not show_timestamps:
			fmt = "[%(levelname)s] %(name)s: %(message)s"
		formatter = logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

	handler = logging.StreamHandler(sys.stdout)
	handler.setFormatter(formatter)

	root_logger = logging.getLogger()
	root_logger.handlers.clear()
	root_logger.addHandler(handler)
	root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

	# Silence noisy libraries
	logging.getLogger("PIL").setLevel(logging.WARNING)
	logging.getLogger("multipart").setLevel(logging.WARNING)
