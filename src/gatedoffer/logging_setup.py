"""Logging configuration for the operator CLI and embedding services.

Library modules only call ``logging.getLogger(__name__)``; nothing is
configured until an entry point calls ``setup_logging``. Console output
goes to stderr so JSON command output on stdout stays parseable.
"""

from __future__ import annotations

import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
    log_level: str = "WARNING",
    log_file: Optional[Path] = None,
    json_console: bool = False,
) -> None:
    """Configure the ``gatedoffer`` logger tree.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        log_file: Optional path for a rotating JSON log file.
        json_console: Emit JSON on stderr instead of plain text.
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stderr,
                "formatter": "json" if json_console else "standard",
                "level": log_level,
            },
        },
        "loggers": {
            "gatedoffer": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(log_file),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "level": log_level,
        }
        config["loggers"]["gatedoffer"]["handlers"].append("file")
    logging.config.dictConfig(config)
