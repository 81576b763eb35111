"""Async HTTP transport: the innermost :data:`~retryify.models.Send`.

:class:`HttpxTransport` performs exactly one request per call on an
:class:`httpx.AsyncClient`.  Responses are returned *streaming*, so their
body is a one-shot stream that must be read or closed; the retry
middlewares close stale bodies before retrying.

The request's cancellation token is honoured during the send: if it fires
before the response headers arrive the in-flight request is abandoned and
:class:`~retryify.RetryifyCancelledError` is raised.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from retryify.errors import RetryifyCancelledError
from retryify.models import RequestOptions, Target
from retryify.observability import get_logger

log = get_logger("retryify.transport")


class HttpxTransport:
    """Single-attempt HTTP transport built on :class:`httpx.AsyncClient`.

    Instances are callable with the :data:`~retryify.models.Send` signature,
    so they can be wrapped directly::

        async with HttpxTransport() as transport:
            send = with_retry_status(config)(transport)
            response = await send("https://example.com/data")

    Parameters
    ----------
    client:
        An existing client to use.  The transport does not close a client it
        did not create.
    timeout:
        Default request timeout in seconds (ignored when *client* is given).
    proxy:
        Optional HTTP/HTTPS proxy URL (ignored when *client* is given).
    transport:
        Optional low-level httpx transport, e.g. :class:`httpx.MockTransport`
        in tests (ignored when *client* is given).
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        proxy: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            proxy=proxy,
            transport=transport,
        )

    # -- public API --------------------------------------------------------

    async def send(
        self,
        target: Target,
        options: RequestOptions | None = None,
    ) -> httpx.Response:
        """Send one request and return the (streaming) response.

        Raises
        ------
        RetryifyCancelledError
            If ``options.cancel`` is cancelled before or during the send.
        httpx.HTTPError
            Transport-level failures propagate unchanged.
        """
        options = options or RequestOptions()
        extra: dict[str, Any] = {}
        if options.timeout is not None:
            extra["timeout"] = options.timeout
        request = self._client.build_request(
            options.method,
            target,
            headers=options.headers,
            params=options.params,
            content=options.content,
            json=options.json,
            **extra,
        )

        token = options.cancel
        if token is None:
            return await self._client.send(request, stream=True)

        token.raise_if_cancelled("send")
        sending = asyncio.ensure_future(self._client.send(request, stream=True))
        watcher = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({sending, watcher}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            watcher.cancel()
            if not sending.done():
                sending.cancel()

        if sending.done() and not sending.cancelled():
            return sending.result()

        log.info(
            "Request cancelled in flight",
            extra={
                "extra_fields": {
                    "method": options.method,
                    "url": str(request.url),
                    "reason": token.reason,
                }
            },
        )
        raise RetryifyCancelledError(
            message=token.reason or "Operation cancelled",
            context={"reason": token.reason, "phase": "send"},
        )

    __call__ = send

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
