"""Backoff policies: the client-side half of retry timing.

A backoff policy is a small stateful object that, each time the retry loop
asks, answers either "wait this many milliseconds" (:class:`Delay`) or
"stop retrying" (:data:`EXHAUSTED`).  Exhaustion is an ordinary return
value, never an exception, so it cannot be confused with a real failure.

Middlewares never hold a policy directly.  They hold a *factory*
(``Callable[[], BackoffPolicy]``) and call it once per top-level request,
so concurrent requests never share retry state.

Stock policies::

    from retryify.backoff import exponential, upto

    strategy = lambda: upto(3, exponential(base_ms=100, maximum_ms=5_000))
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Protocol, Union, runtime_checkable


@dataclass(frozen=True, slots=True)
class Delay:
    """Wait *ms* milliseconds, then retry."""

    ms: float


class Exhausted(Enum):
    """Terminal signal: the policy has no retries left."""

    EXHAUSTED = "exhausted"

    def __repr__(self) -> str:
        return "EXHAUSTED"


EXHAUSTED = Exhausted.EXHAUSTED

BackoffStep = Union[Delay, Literal[Exhausted.EXHAUSTED]]


@runtime_checkable
class BackoffPolicy(Protocol):
    """Protocol that any backoff policy must satisfy."""

    def next_backoff(self) -> BackoffStep:
        """Return the next wait, or :data:`EXHAUSTED` to stop retrying."""
        ...

    def reset_backoff(self) -> None:
        """Return the policy to its initial state."""
        ...


# ---------------------------------------------------------------------------
# Stock policies
# ---------------------------------------------------------------------------

class ConstantBackoff:
    """Always wait the same amount of time.  Never exhausts on its own."""

    __slots__ = ("delay_ms",)

    def __init__(self, delay_ms: float) -> None:
        if delay_ms < 0 or math.isnan(delay_ms):
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self.delay_ms = delay_ms

    def next_backoff(self) -> BackoffStep:
        return Delay(self.delay_ms)

    def reset_backoff(self) -> None:
        pass


class LinearBackoff:
    """Wait ``base_ms * n`` on the n-th call, capped at *maximum_ms*."""

    __slots__ = ("_calls", "base_ms", "maximum_ms")

    def __init__(self, base_ms: float, maximum_ms: float = math.inf) -> None:
        if base_ms < 0:
            raise ValueError(f"base_ms must be >= 0, got {base_ms}")
        if maximum_ms < base_ms:
            raise ValueError(
                f"maximum_ms must be >= base_ms, got {maximum_ms} < {base_ms}"
            )
        self.base_ms = base_ms
        self.maximum_ms = maximum_ms
        self._calls = 0

    def next_backoff(self) -> BackoffStep:
        self._calls += 1
        return Delay(min(self.base_ms * self._calls, self.maximum_ms))

    def reset_backoff(self) -> None:
        self._calls = 0


class ExponentialBackoff:
    """Wait ``base_ms * 2^n`` (n starting at 0), capped at *maximum_ms*.

    When *jitter* is enabled the delay is randomly scaled to between 50 %
    and 100 % of its value, reducing thundering-herd effects.
    """

    __slots__ = ("_attempt", "base_ms", "jitter", "maximum_ms")

    def __init__(
        self,
        base_ms: float = 1_000,
        maximum_ms: float = 60_000,
        jitter: bool = False,
    ) -> None:
        if base_ms < 0:
            raise ValueError(f"base_ms must be >= 0, got {base_ms}")
        if maximum_ms < 0:
            raise ValueError(f"maximum_ms must be >= 0, got {maximum_ms}")
        self.base_ms = base_ms
        self.maximum_ms = maximum_ms
        self.jitter = jitter
        self._attempt = 0

    def next_backoff(self) -> BackoffStep:
        delay = min(self.base_ms * (2 ** self._attempt), self.maximum_ms)
        self._attempt += 1
        if self.jitter:
            delay *= 0.5 + random.random() * 0.5
        return Delay(delay)

    def reset_backoff(self) -> None:
        self._attempt = 0


class Upto:
    """Limit *policy* to *retries* delays, then report :data:`EXHAUSTED`.

    An inner policy that exhausts earlier still wins.
    """

    __slots__ = ("_used", "policy", "retries")

    def __init__(self, retries: int, policy: BackoffPolicy) -> None:
        if retries < 0:
            raise ValueError(f"retries must be >= 0, got {retries}")
        self.retries = retries
        self.policy = policy
        self._used = 0

    def next_backoff(self) -> BackoffStep:
        if self._used >= self.retries:
            return EXHAUSTED
        step = self.policy.next_backoff()
        if step is not EXHAUSTED:
            self._used += 1
        return step

    def reset_backoff(self) -> None:
        self._used = 0
        self.policy.reset_backoff()


# -- short constructors ------------------------------------------------------

def constant(delay_ms: float) -> ConstantBackoff:
    return ConstantBackoff(delay_ms)


def zero() -> ConstantBackoff:
    """A policy that adds no delay.  Pair with :func:`upto` to cap attempts."""
    return ConstantBackoff(0)


def linear(base_ms: float, maximum_ms: float = math.inf) -> LinearBackoff:
    return LinearBackoff(base_ms, maximum_ms)


def exponential(
    base_ms: float = 1_000,
    maximum_ms: float = 60_000,
    jitter: bool = False,
) -> ExponentialBackoff:
    return ExponentialBackoff(base_ms, maximum_ms, jitter)


def upto(retries: int, policy: BackoffPolicy) -> Upto:
    return Upto(retries, policy)
