"""Default request headers."""

from __future__ import annotations

from collections.abc import Mapping

import httpx

from retryify.models import RequestOptions, Send, Target


def with_headers(headers: Mapping[str, str] | httpx.Headers):
    """Middleware factory: add *headers* to every request.

    Headers the caller already set are never overridden.  An empty mapping
    returns a pass-through middleware.
    """
    defaults = httpx.Headers(headers)

    def middleware(send: Send) -> Send:
        if not defaults:
            return send

        async def send_with_headers(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            options = options or RequestOptions()
            missing = {
                name: value
                for name, value in defaults.items()
                if name not in options.headers
            }
            if missing:
                options = options.with_headers(missing)
            return await send(target, options)

        return send_with_headers

    return middleware


def with_header(name: str, value: str):
    """Middleware factory: add a single header unless already present."""
    return with_headers({name: value})
