"""Metrics hook protocol and no-op default implementation.

The retry middlewares emit counters and timings at each decision point.
Without a hook a :class:`NoopMetricsHook` is used, so call-sites never need
``None`` guards.  Supply any object satisfying :class:`MetricsHook` to route
them to StatsD, Prometheus, Datadog, or a test recorder.

Emitted metric names:

* ``retryify.attempts_total``         -- counter, tag ``status``
* ``retryify.retries_total``          -- counter, tag ``reason``
* ``retryify.retry_wait_ms``          -- timing
* ``retryify.token_refresh_total``    -- counter
* ``retryify.dispose_failures_total`` -- counter

All carry a ``middleware`` tag (``retry_after``, ``retry_status`` or
``authorization``).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    Tags are plain ``str -> str`` dicts; backends translate them into
    whatever labelling scheme they support.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric by *value*."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that silently discards all data points."""

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass
