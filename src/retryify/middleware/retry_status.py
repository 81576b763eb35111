"""Retry driven purely by status code and a client-side backoff policy."""

from __future__ import annotations

import httpx

from retryify.config import RetryStatusConfig
from retryify.models import AttemptContext, RequestOptions, Send, Target

from .engine import RetryLoop


def with_retry_status(config: RetryStatusConfig):
    """Middleware factory: retry transient failures on a backoff schedule.

    Responses with a status in :attr:`RetryStatusConfig.retryable_statuses`
    (``408, 429, 500, 502, 503, 504`` by default) are retried after the
    policy's next delay until it reports exhaustion, at which point the last
    response is returned.  ``Retry-After`` headers are ignored here; stack
    :func:`~retryify.with_retry_after` to honour them.

    All methods are retried, including non-idempotent ones.  Requests whose
    body is a one-shot stream raise
    :class:`~retryify.RetryifyBodyNotReplayableError` instead of being sent
    twice.

    Example::

        from retryify.backoff import linear, upto

        send = with_retry_status(
            RetryStatusConfig(strategy=lambda: upto(5, linear(1_000, 10_000)))
        )(send)
    """

    def middleware(send: Send) -> Send:
        loop = RetryLoop(
            send,
            middleware="retry_status",
            retryable_statuses=config.retryable_statuses,
            new_policy=config.new_policy,
            metrics=config.metrics,
        )

        async def send_with_retry_status(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            return await loop.run(AttemptContext(target, options or RequestOptions()))

        return send_with_retry_status

    return middleware
