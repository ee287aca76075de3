"""
Logging setup for the CLI and the batch runner.

Text (human-readable) or single-line JSON, chosen from the workspace
``logging`` section. LOG_LEVEL / LOG_FORMAT env vars override it.
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime


class JSONFormatter(logging.Formatter):
    """Single-line JSON log formatter for log aggregators."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


_NOISY_LOGGERS = ["urllib3", "requests"]


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    level_name = os.getenv("LOG_LEVEL", level).upper()
    resolved = getattr(logging, level_name, logging.INFO)
    log_format = os.getenv("LOG_FORMAT", fmt).lower()

    root = logging.getLogger()
    root.setLevel(resolved)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
