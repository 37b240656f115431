"""
Logging Configuration — One root handler on stderr, text or JSON.

Monitor and notifier records may carry two extras, `tick_id` and
`reference`; both formatters render them when present.

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict

EXTRA_FIELDS = ("tick_id", "reference")

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("pymongo", "httpx")


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in EXTRA_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, message, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_extras(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """
    Short lines for a terminal:

        12:34:56 INFO    [monitor] Remote commit ... (tick=T-..., ref=abc123)
    """

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        module = record.name.rsplit(".", 1)[-1]
        line = f"{time_str} {record.levelname:7} [{module}] {record.getMessage()}"

        extras = _extras(record)
        if extras:
            tags = ", ".join(
                f"{'ref' if k == 'reference' else 'tick'}={v}" for k, v in extras.items()
            )
            line += f" ({tags})"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str | None = None, format_type: str | None = None) -> None:
    """
    Replace the root logger's handlers with a single stderr handler.

    Arguments override LOG_LEVEL / LOG_FORMAT. Unknown levels fall back
    to INFO; any format other than "json" means text.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format == "json" else TextFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
