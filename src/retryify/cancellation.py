"""Cooperative cancellation for retry chains.

A :class:`CancellationToken` is owned by the caller, not by the
middlewares.  It travels with the request in
:attr:`RequestOptions.cancel <retryify.models.RequestOptions.cancel>` and is
observed at the two suspension points of a retry chain:

* the wait between attempts (:func:`wait_for`), and
* the send itself (the transport's responsibility, see
  :class:`retryify.transport.HttpxTransport`).

Usage::

    from retryify import CancellationToken, RequestOptions

    token = CancellationToken()
    task = asyncio.create_task(send(url, RequestOptions(cancel=token)))
    ...
    token.cancel("user navigated away")   # raises RetryifyCancelledError in task
"""

from __future__ import annotations

import asyncio
import math

from retryify.errors import RetryifyCancelledError, RetryifyRangeError

MAX_TIMER_DELAY_MS: int = 2**31 - 1
"""Largest wait the retry loop accepts (about 24.8 days)."""


class CancellationToken:
    """A one-shot, event-driven cancellation signal.

    Backed by an :class:`asyncio.Event` so waiters wake at the moment of
    cancellation instead of polling.  Cancelling twice keeps the first
    reason.
    """

    __slots__ = ("_event", "_reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation and wake every waiter."""
        if self._event.is_set():
            return
        self._reason = reason or "Operation cancelled"
        self._event.set()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self, phase: str = "wait") -> None:
        """Raise :class:`RetryifyCancelledError` if the token has fired."""
        if self._event.is_set():
            raise RetryifyCancelledError(
                message=self._reason or "Operation cancelled",
                context={"reason": self._reason, "phase": phase},
            )

    def __repr__(self) -> str:
        state = f"cancelled, reason={self._reason!r}" if self.cancelled else "active"
        return f"CancellationToken({state})"


def check_delay(delay_ms: float) -> None:
    """Raise :class:`RetryifyRangeError` if *delay_ms* cannot be waited for."""
    if math.isnan(delay_ms) or delay_ms > MAX_TIMER_DELAY_MS:
        raise RetryifyRangeError(
            message=(
                f"Delay of {delay_ms} ms exceeds the maximum timer duration "
                f"of {MAX_TIMER_DELAY_MS} ms"
            ),
            context={"delay_ms": delay_ms, "max_delay_ms": MAX_TIMER_DELAY_MS},
        )


async def wait_for(delay_ms: float, token: CancellationToken | None = None) -> None:
    """Suspend for *delay_ms* milliseconds unless *token* fires first.

    Parameters
    ----------
    delay_ms:
        Duration in milliseconds.  Negative values are treated as zero; a
        zero delay still yields control to the event loop once.
    token:
        Optional cancellation token.  If it is already cancelled nothing is
        scheduled and :class:`RetryifyCancelledError` is raised at once.

    Raises
    ------
    RetryifyRangeError
        If *delay_ms* exceeds :data:`MAX_TIMER_DELAY_MS` (or is NaN).
    RetryifyCancelledError
        If *token* is, or becomes, cancelled before the delay elapses.
    """
    check_delay(delay_ms)
    seconds = max(0.0, delay_ms) / 1000

    if token is None:
        await asyncio.sleep(seconds)
        return

    token.raise_if_cancelled()

    sleeper = asyncio.ensure_future(asyncio.sleep(seconds))
    watcher = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()

    token.raise_if_cancelled()
