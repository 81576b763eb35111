"""Retry driven by the server's ``Retry-After`` header.

Only responses whose status is in
:attr:`RetryAfterConfig.retryable_statuses` (``429`` and ``503`` by default)
*and* that carry a valid ``Retry-After`` value are retried.  The server
decides how long to wait; the backoff policy decides how many times, and may
add extra delay on top.
"""

from __future__ import annotations

import httpx

from retryify.backoff import EXHAUSTED, BackoffPolicy
from retryify.cancellation import check_delay
from retryify.config import RetryAfterConfig
from retryify.errors import RetryifyConstraintError
from retryify.models import AttemptContext, RequestOptions, Send, Target

from .engine import RetryLoop
from .retry_after_header import parse_retry_after

RETRY_AFTER_HEADER = "Retry-After"


def _server_delay_planner(config: RetryAfterConfig):
    ceiling = config.max_server_delay

    def plan(response: httpx.Response, policy: BackoffPolicy) -> float | None:
        server_delay = parse_retry_after(response.headers.get(RETRY_AFTER_HEADER))
        if server_delay is None:
            return None

        if ceiling is not None and server_delay > ceiling:
            raise RetryifyConstraintError(
                message=(
                    "Exceeded maximum ceiling for Retry-After value: "
                    f"expected up to {ceiling} ms, received {server_delay} ms"
                ),
                context={
                    "server_delay_ms": server_delay,
                    "max_server_delay_ms": ceiling,
                    "status_code": response.status_code,
                },
            )
        check_delay(server_delay)

        step = policy.next_backoff()
        if step is EXHAUSTED:
            return None
        return server_delay + step.ms

    return plan


def with_retry_after(config: RetryAfterConfig | None = None):
    """Middleware factory: retry ``429``/``503`` responses after the delay
    named by their ``Retry-After`` header.

    Behaviour summary:

    * Successful and non-retryable responses pass through unchanged, even
      when they carry ``Retry-After``.
    * A missing or malformed ``Retry-After`` means no retry.
    * ``delay-seconds`` values are seconds; HTTP dates are absolute, and past
      dates retry on the next event-loop turn.
    * A server delay above ``max_server_delay`` raises
      :class:`~retryify.RetryifyConstraintError`.
    * A server delay longer than the timer maximum, or too large to be
      represented exactly, raises :class:`~retryify.RetryifyRangeError`.
      Both checks run before the policy is consulted.
    * The policy's delay is added to the server's; policy exhaustion returns
      the last response.

    Example::

        send = with_retry_after(RetryAfterConfig(max_retries=3,
                                                 max_server_delay=120_000))(send)
    """
    config = config if config is not None else RetryAfterConfig()
    plan = _server_delay_planner(config)

    def middleware(send: Send) -> Send:
        loop = RetryLoop(
            send,
            middleware="retry_after",
            retryable_statuses=config.retryable_statuses,
            new_policy=config.new_policy,
            plan_delay=plan,
            metrics=config.metrics,
        )

        async def send_with_retry_after(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            return await loop.run(AttemptContext(target, options or RequestOptions()))

        return send_with_retry_after

    return middleware
