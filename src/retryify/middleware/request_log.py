"""Request/response logging middleware.

Each request produces one structured entry::

    {"request": {"url": ..., "method": "GET", "headers": {...}},
     "response": {"status": 200, "reason_phrase": "OK", "headers": {...},
                  "ok": true},
     "duration_ms": 12.3, "timestamp": "2026-10-18T12:00:00+00:00"}

Failed sends log ``error`` instead of ``response`` and re-raise.
Credential-bearing headers are replaced by ``[REDACTED]``.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import httpx

from retryify.models import RequestOptions, Send, Target
from retryify.observability import get_logger

log = get_logger("retryify.http")

DEFAULT_REDACT_HEADERS: tuple[str, ...] = ("authorization", "cookie", "set-cookie")

LogSink = Callable[[dict[str, Any]], None]


def _default_sink(entry: dict[str, Any]) -> None:
    message = "HTTP request failed" if "error" in entry else "HTTP request"
    log.info(message, extra={"extra_fields": entry})


def _headers_to_dict(headers: httpx.Headers, redact: frozenset[str]) -> dict[str, str]:
    return {
        name: "[REDACTED]" if name.lower() in redact else value
        for name, value in headers.items()
    }


def with_logging(
    logger: LogSink | None = None,
    *,
    include_request_headers: bool = True,
    include_response_headers: bool = True,
    redact_headers: Iterable[str] = DEFAULT_REDACT_HEADERS,
):
    """Middleware factory: log every request with its outcome and duration.

    Parameters
    ----------
    logger:
        Callable receiving each entry dict.  Defaults to the structured
        ``retryify.http`` logger at INFO.
    include_request_headers / include_response_headers:
        Whether headers are included in the entry.
    redact_headers:
        Case-insensitive header names whose values are masked.
    """
    sink = logger or _default_sink
    redact = frozenset(name.lower() for name in redact_headers)

    def middleware(send: Send) -> Send:
        async def send_with_logging(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            options = options or RequestOptions()
            timestamp = datetime.now(timezone.utc).isoformat()
            request = {
                "url": str(target),
                "method": options.method,
                "headers": (
                    _headers_to_dict(options.headers, redact)
                    if include_request_headers
                    else {}
                ),
            }
            t0 = time.monotonic()
            try:
                response = await send(target, options)
            except Exception as exc:
                sink({
                    "request": request,
                    "error": repr(exc),
                    "duration_ms": (time.monotonic() - t0) * 1000,
                    "timestamp": timestamp,
                })
                raise

            sink({
                "request": request,
                "response": {
                    "status": response.status_code,
                    "reason_phrase": response.reason_phrase,
                    "headers": (
                        _headers_to_dict(response.headers, redact)
                        if include_response_headers
                        else {}
                    ),
                    "ok": response.is_success,
                },
                "duration_ms": (time.monotonic() - t0) * 1000,
                "timestamp": timestamp,
            })
            return response

        return send_with_logging

    return middleware
