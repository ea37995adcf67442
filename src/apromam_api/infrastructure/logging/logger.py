# src/apromam_api/infrastructure/logging/logger.py
# Copyright (c) APROMAM.
# SPDX-License-Identifier: MIT
"""JSON-lines logging for the fichas core.

Each record becomes one JSON object with the keys ``ts``, ``level``,
``logger`` and ``message``, followed by whatever the call site passed via
``extra=``. Call sites log a dotted event name as the message:

    log.info("db.write.ok", extra=statement_context("ficha.insert", sql, 12))

Statement events share one field set (``statement``, ``sql``,
``param_count``) built by :func:`statement_context`; bound parameter values
are never part of it.

Startup calls :func:`configure_root_logging` once; modules obtain loggers with
:func:`get_json_logger`.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

__all__ = ["configure_root_logging", "get_json_logger", "statement_context"]

_DEFAULT_LEVEL = "INFO"

# Keys present on every LogRecord; the rest were supplied through ``extra=``.
_RECORD_KEYS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_KEYS and not key.startswith("_")
    }


def _exception_fields(record: logging.LogRecord) -> dict[str, str]:
    if not record.exc_info:
        return {}
    exc_type, exc_value, _ = record.exc_info
    fields: dict[str, str] = {}
    if exc_type is not None:
        fields["exc_type"] = exc_type.__name__
    if exc_value is not None:
        fields["exc_message"] = str(exc_value)
    return fields


class _JsonFormatter(logging.Formatter):
    """Render a record as a single compact JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        line.update(_extras(record))
        line.update(_exception_fields(record))
        return json.dumps(line, separators=(",", ":"), ensure_ascii=False, default=str)


def _resolve_level(level: str | int | None) -> str | int:
    if level is None:
        level = os.getenv("LOG_LEVEL") or _DEFAULT_LEVEL
    return level.upper() if isinstance(level, str) else level


def configure_root_logging(level: str | int | None = None) -> None:
    """Set the root level and attach the JSON handler once.

    Args:
        level: Level number or name; falls back to ``LOG_LEVEL``, then ``INFO``.
            Calling again only changes the level.
    """
    root = logging.getLogger()
    root.setLevel(_resolve_level(level))
    if any(isinstance(handler.formatter, _JsonFormatter) for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return the logger for ``name``; records propagate to the root JSON handler."""
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger


def statement_context(name: str, sql: str, param_count: int, **fields: Any) -> dict[str, Any]:
    """Build the ``extra=`` mapping shared by statement log events."""
    return {"statement": name, "sql": sql, "param_count": param_count, **fields}
