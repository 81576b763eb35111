"""``Cookie`` header injection for server-side clients."""

from __future__ import annotations

from collections.abc import Mapping

import httpx

from retryify.models import RequestOptions, Send, Target

COOKIE_HEADER = "Cookie"


def _serialize(cookies: Mapping[str, str]) -> str:
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def _merge(existing: str | None, added: str) -> str:
    if not existing:
        return added
    return f"{existing}; {added}"


def _cookie_middleware(cookie_string: str):
    def middleware(send: Send) -> Send:
        async def send_with_cookies(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            options = options or RequestOptions()
            merged = _merge(options.headers.get(COOKIE_HEADER), cookie_string)
            return await send(target, options.with_header(COOKIE_HEADER, merged))

        return send_with_cookies

    return middleware


def with_cookies(cookies: Mapping[str, str]):
    """Middleware factory: append *cookies* to the ``Cookie`` header.

    Cookies already on the request are kept; the new ones follow them, so
    ``Cookie: a=1`` becomes ``Cookie: a=1; session=abc``.  Values are sent
    as-is and must already be encoded.

    Raises
    ------
    ValueError
        If *cookies* is empty.
    """
    if not cookies:
        raise ValueError("with_cookies requires at least one cookie")
    return _cookie_middleware(_serialize(cookies))


def with_cookie(name: str, value: str):
    """Middleware factory: append a single ``name=value`` cookie."""
    return _cookie_middleware(f"{name}={value}")
