"""Structured JSON logger for retryify.

Every record is one JSON object per line, so retry decisions can be
filtered by field in any log pipeline::

    {"ts": "2026-10-18T12:00:00.123456+00:00", "level": "INFO",
     "logger": "retryify.engine", "message": "Retry scheduled",
     "middleware": "retry_after", "status_code": 503, "attempt": 1,
     "delay_ms": 2000}

Usage::

    from retryify.observability import get_logger

    log = get_logger("retryify.engine")
    log.info("retry scheduled", extra={"extra_fields": {"delay_ms": 250}})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  Fields passed as ``extra={"extra_fields": {...}}`` are
    merged into the top level; ``exc_info`` and ``stack_info`` are
    serialised when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(
            record, "extra_fields", None
        )
        if extra_fields is not None:
            log_entry.update(extra_fields)

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


# One handler per logger name, so ``get_logger`` stays idempotent across
# modules.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "retryify",
    *,
    level: int | str = logging.WARNING,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Defaults to ``"retryify"``.  Sub-module loggers use
        dotted names such as ``"retryify.engine"``.
    level:
        Level applied the first time *name* is configured.  Accepts an
        ``int`` or a case-insensitive string (``"DEBUG"``).  Defaults to
        ``WARNING`` so that per-retry INFO and DEBUG records stay quiet unless
        asked for.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        A logger with a :class:`StructuredFormatter` handler attached.
        Repeated calls with the same *name* return the same logger and do
        **not** add duplicate handlers.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        # Parent loggers (e.g. root) may have their own handlers.
        logger.propagate = False

        _configured_loggers.add(name)

    return logger
