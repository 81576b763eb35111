"""Resolve request targets against a base URL."""

from __future__ import annotations

import httpx

from retryify.models import RequestOptions, Send, Target


def _origin(url: httpx.URL) -> tuple[str, str, int | None]:
    return (url.scheme, url.host, url.port)


def _relative_part(url: httpx.URL) -> str:
    relative = url.raw_path.decode("ascii").lstrip("/")
    if url.fragment:
        relative += f"#{url.fragment}"
    return relative


def resolve_target(base: httpx.URL, target: Target) -> Target:
    """Resolve *target* against *base*, preserving its type.

    * Relative strings (``"users"``, ``"/users?page=2"``) are joined onto
      the base path, with any leading slash dropped so the base path is
      kept.
    * Absolute strings are returned unchanged.
    * :class:`httpx.URL` targets on the base's origin have their path
      re-rooted under the base path; other origins pass through.

    Resolution follows RFC 3986, so a base without a trailing slash has its
    last segment replaced: ``https://api.example.com/v1`` + ``users`` gives
    ``https://api.example.com/users``.
    """
    if isinstance(target, str):
        parsed = httpx.URL(target)
        if parsed.is_absolute_url:
            return target
        return str(base.join(target.lstrip("/")))

    if _origin(target) == _origin(base):
        return base.join(_relative_part(target))
    return target


def with_base_url(base: str | httpx.URL):
    """Middleware factory: resolve every request target against *base*.

    Example::

        send = with_base_url("https://api.example.com/v1/")(send)
        await send("users")   # -> https://api.example.com/v1/users
    """
    base_url = httpx.URL(base)
    if not base_url.is_absolute_url:
        raise ValueError(f"base URL must be absolute, got {str(base)!r}")

    def middleware(send: Send) -> Send:
        async def send_with_base_url(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            return await send(resolve_target(base_url, target), options or RequestOptions())

        return send_with_base_url

    return middleware
