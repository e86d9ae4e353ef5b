"""
Log setup and the structured fields tablemap attaches to its records.

tablemap never installs handlers by itself; it only emits through loggers
named after its modules:

- ``tablemap.connection`` logs every statement at DEBUG with ``table``,
  ``operation`` and ``params`` (the number of bound parameters; values are
  never logged), "Connection opened" / "Connection closed" at INFO with the
  password-redacted ``dsn``, and each translated driver failure at WARNING
  with ``error_type`` and ``error``.
- ``tablemap.infrastructure.db_factory`` logs connect retries at WARNING.
- ``tablemap.domain.schema`` logs registrations at DEBUG.

Applications wire output with ``configure_logging``; the CLI does so from the
``LOG_LEVEL`` and ``LOG_JSON`` settings:

    from tablemap.utils.logging import configure_logging

    configure_logging(level="DEBUG", json_logs=True)

With ``json_logs`` every ``extra=`` field becomes a top-level JSON key.
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "extra"}


def _json_formatter(record: logging.LogRecord) -> str:
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(
        (key, value)
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    )
    # Older callers pass a nested ``extra={"extra": {...}}`` dict.
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        payload.update(nested)
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    if record.stack_info:
        payload["stack_info"] = record.stack_info
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; values json cannot encode are rendered with str()."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def _logging_config(level: str, formatter_name: str) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": _CONSOLE_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": formatter_name,
                "level": level,
            }
        },
        "root": {"handlers": ["stderr"], "level": level},
    }


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    force: bool = True,
) -> None:
    """
    Send log records to stderr at ``level``.

    Parameters
    ----------
    level : str
        Level name such as "DEBUG" (statement traces) or "WARNING" (failures only).
    json_logs : bool
        Emit JSON lines instead of the pipe-separated console format.
    force : bool
        When False and the root logger already has handlers, leave them alone.
    """
    if not force and logging.getLogger().handlers:
        return
    logging.config.dictConfig(_logging_config(level, "json" if json_logs else "console"))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
