"""Stacking middlewares.

Two orderings are offered:

* :func:`compose` -- right-to-left, like mathematical composition.  The
  *last* middleware listed is outermost and sees the request first.
* :func:`pipeline` -- left-to-right.  The *first* middleware listed is
  outermost.

Example::

    send = pipeline(
        with_logging(),
        with_retry_after(RetryAfterConfig(max_retries=3)),
        with_retry_status(RetryStatusConfig(strategy=...)),
    )(transport.send)
    # request flow: logging -> retry_after -> retry_status -> transport
"""

from __future__ import annotations

from functools import reduce

from retryify.models import Middleware, Send


def compose(*middlewares: Middleware) -> Middleware:
    """Compose *middlewares* right-to-left (last listed runs first)."""

    def apply(send: Send) -> Send:
        return reduce(lambda nxt, current: current(nxt), middlewares, send)

    return apply


def pipeline(*middlewares: Middleware) -> Middleware:
    """Compose *middlewares* left-to-right (first listed runs first)."""

    def apply(send: Send) -> Send:
        return reduce(lambda nxt, current: current(nxt), reversed(middlewares), send)

    return apply
