"""The retry loop shared by every retry middleware.

:class:`RetryLoop` drives one request chain through the states in
:class:`~retryify.models.RetryState`::

    ATTEMPTING -> EVALUATING -> DONE
                             -> COMPUTING_DELAY -> DISPOSING -> WAITING
                                -> (REFRESHING) -> ATTEMPTING

Each middleware plugs in the parts that differ:

* a **delay planner** -- turns a retryable response and the chain's backoff
  policy into a wait in milliseconds, or ``None`` to stop;
* an optional **refresh** step -- rebuilds the attempt context before every
  retry (used to re-acquire credentials).

The loop itself owns the invariants: attempts are strictly sequential,
successful responses are never retried, the stale body is released before
waiting, the wait is cancellable, and a wait that cannot be represented is
an error rather than "retry forever".
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from retryify.backoff import EXHAUSTED, BackoffPolicy
from retryify.cancellation import check_delay, wait_for
from retryify.errors import RetryifyBodyNotReplayableError, RetryifyError
from retryify.models import AttemptContext, RetryState, Send
from retryify.observability import NoopMetricsHook, get_logger

log = get_logger("retryify.engine")

DISPOSE_REASON = "Retry scheduled"
"""Reason recorded when a stale response body is released before a retry."""

DelayPlanner = Callable[[httpx.Response, BackoffPolicy], "float | None"]
Refresh = Callable[[AttemptContext], Awaitable[AttemptContext]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def policy_delay(response: httpx.Response, policy: BackoffPolicy) -> float | None:
    """Delay planner that defers entirely to the backoff policy."""
    step = policy.next_backoff()
    if step is EXHAUSTED:
        return None
    return step.ms


async def dispose_body(
    response: httpx.Response,
    metrics: Any | None = None,
    tags: dict[str, str] | None = None,
) -> bool:
    """Release *response*'s body stream before it is discarded.

    Best effort: a body that is already closed is left alone, and any
    failure while closing is logged and swallowed so it can never block a
    retry.  Returns ``True`` if the body is closed afterwards.
    """
    if response.is_closed:
        return True
    try:
        await response.aclose()
    except Exception as exc:  # noqa: BLE001 - disposal must never fail a retry
        log.debug(
            "Response body disposal failed",
            extra={
                "extra_fields": {
                    "reason": DISPOSE_REASON,
                    "status_code": response.status_code,
                    "error": repr(exc),
                }
            },
        )
        (metrics or NoopMetricsHook()).increment(
            "retryify.dispose_failures_total", tags=tags,
        )
        return False
    log.debug(
        "Response body disposed",
        extra={
            "extra_fields": {
                "reason": DISPOSE_REASON,
                "status_code": response.status_code,
            }
        },
    )
    return True


# ---------------------------------------------------------------------------
# Retry loop
# ---------------------------------------------------------------------------

class RetryLoop:
    """Sequential, cancellable retry loop around a :data:`~retryify.models.Send`.

    A ``RetryLoop`` holds only immutable configuration and may be shared by
    any number of concurrent :meth:`run` calls; every call creates its own
    backoff policy.

    Parameters
    ----------
    send:
        The wrapped send operation.
    middleware:
        Name used in log records and metric tags.
    retryable_statuses:
        Statuses that may be retried.  ``2xx`` responses are returned even
        if listed here.
    new_policy:
        Backoff policy factory, called once per :meth:`run`.
    plan_delay:
        Delay planner; see the module docstring.  Defaults to
        :func:`policy_delay`.
    refresh:
        Optional coroutine run after each wait to rebuild the attempt
        context.
    metrics:
        Optional :class:`~retryify.observability.MetricsHook`.
    """

    __slots__ = (
        "_metrics",
        "_new_policy",
        "_plan_delay",
        "_refresh",
        "_send",
        "_statuses",
        "middleware",
    )

    def __init__(
        self,
        send: Send,
        *,
        middleware: str,
        retryable_statuses: frozenset[int],
        new_policy: Callable[[], BackoffPolicy],
        plan_delay: DelayPlanner = policy_delay,
        refresh: Refresh | None = None,
        metrics: Any | None = None,
    ) -> None:
        self._send = send
        self.middleware = middleware
        self._statuses = retryable_statuses
        self._new_policy = new_policy
        self._plan_delay = plan_delay
        self._refresh = refresh
        self._metrics = metrics if metrics is not None else NoopMetricsHook()

    # -- public API --------------------------------------------------------

    async def run(self, context: AttemptContext) -> httpx.Response:
        """Send *context* until a non-retryable response or exhaustion.

        Returns
        -------
        httpx.Response
            The last response received, unchanged.

        Raises
        ------
        RetryifyConstraintError
            If the planner rejects a server-requested delay.
        RetryifyRangeError
            If the planned wait exceeds the maximum timer duration.
        RetryifyCancelledError
            If the request's cancellation token fires.
        RetryifyBodyNotReplayableError
            If a retry is needed but the request body is a one-shot stream.
        RetryifyConfigurationError
            If the refresh step fails (e.g. an invalid token pair).
        """
        tags = {"middleware": self.middleware}
        policy = self._new_policy()
        token = context.options.cancel
        attempt = 0

        try:
            while True:
                self._transition(RetryState.ATTEMPTING, attempt)
                response = await self._send(context.target, context.options)
                attempt += 1
                self._metrics.increment(
                    "retryify.attempts_total",
                    tags={**tags, "status": str(response.status_code)},
                )

                self._transition(RetryState.EVALUATING, attempt, response.status_code)
                if response.is_success or response.status_code not in self._statuses:
                    self._transition(RetryState.DONE, attempt, response.status_code)
                    return response

                self._transition(RetryState.COMPUTING_DELAY, attempt, response.status_code)
                delay = self._plan_delay(response, policy)
                if delay is None:
                    self._transition(RetryState.DONE, attempt, response.status_code)
                    return response
                check_delay(delay)

                if not context.options.has_replayable_body:
                    raise RetryifyBodyNotReplayableError(
                        message=(
                            f"Cannot retry {context.options.method} {context.target}: "
                            "the request body is a single-use stream"
                        ),
                        context={
                            "status_code": response.status_code,
                            "attempt": attempt,
                            "response": response,
                        },
                    )

                self._transition(RetryState.DISPOSING, attempt, response.status_code)
                await dispose_body(response, self._metrics, tags)

                log.info(
                    "Retry scheduled",
                    extra={
                        "extra_fields": {
                            "middleware": self.middleware,
                            "method": context.options.method,
                            "target": str(context.target),
                            "status_code": response.status_code,
                            "attempt": attempt,
                            "delay_ms": delay,
                        }
                    },
                )
                self._metrics.increment(
                    "retryify.retries_total",
                    tags={**tags, "reason": str(response.status_code)},
                )

                self._transition(RetryState.WAITING, attempt)
                t0 = time.monotonic()
                await wait_for(delay, token)
                self._metrics.timing(
                    "retryify.retry_wait_ms", (time.monotonic() - t0) * 1000, tags=tags,
                )

                if self._refresh is not None:
                    self._transition(RetryState.REFRESHING, attempt)
                    context = await self._refresh(context)
        except RetryifyError as exc:
            log.debug(
                "Retry loop failed",
                extra={
                    "extra_fields": {
                        "middleware": self.middleware,
                        "state": RetryState.FAILED.value,
                        "attempt": attempt,
                        "error_code": exc.code,
                    }
                },
            )
            raise

    # -- internals ---------------------------------------------------------

    def _transition(
        self,
        state: RetryState,
        attempt: int,
        status_code: int | None = None,
    ) -> None:
        fields: dict[str, Any] = {
            "middleware": self.middleware,
            "state": state.value,
            "attempt": attempt,
        }
        if status_code is not None:
            fields["status_code"] = status_code
        log.debug("Retry loop transition", extra={"extra_fields": fields})
