"""Middleware configuration for retryify.

Each retry middleware takes one dataclass describing its behaviour:

* :class:`RetryAfterConfig` -- :func:`~retryify.with_retry_after`
* :class:`RetryStatusConfig` -- :func:`~retryify.with_retry_status`
* :class:`AuthorizationConfig` -- :func:`~retryify.with_authorization`

Configuration is validated once, at construction time, and is the only
state shared between concurrent requests.  Backoff policies are supplied as
*factories* so each request chain gets its own instance.

Three module-level constants define the default retryable status sets:

* :data:`DEFAULT_RETRY_AFTER_STATUSES` -- ``{429, 503}``
* :data:`DEFAULT_RETRY_STATUS_STATUSES` -- ``{408, 429, 500, 502, 503, 504}``
* :data:`AUTHORIZATION_RETRY_STATUSES` -- ``{401}``
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from retryify.backoff import BackoffPolicy, upto, zero
from retryify.errors import RetryifyConfigurationError

# ---------------------------------------------------------------------------
# Status-set constants
# ---------------------------------------------------------------------------

DEFAULT_RETRY_AFTER_STATUSES: frozenset[int] = frozenset({429, 503})
"""``429 Too Many Requests`` and ``503 Service Unavailable``."""

DEFAULT_RETRY_STATUS_STATUSES: frozenset[int] = frozenset(
    {408, 429, 500, 502, 503, 504}
)
"""Request timeout, rate limiting, and transient server/gateway errors."""

AUTHORIZATION_RETRY_STATUSES: frozenset[int] = frozenset({401})
"""``401 Unauthorized``."""


StrategyFactory = Callable[[], BackoffPolicy]


def _check_strategy(strategy: Any, owner: str) -> None:
    if not callable(strategy):
        raise RetryifyConfigurationError(
            message=f"{owner}.strategy must be a callable returning a backoff policy",
            context={"field": "strategy", "value": strategy},
        )


def _freeze_statuses(statuses: Any, owner: str) -> frozenset[int]:
    try:
        frozen = frozenset(statuses)
    except TypeError as exc:
        raise RetryifyConfigurationError(
            message=f"{owner}.retryable_statuses must be a collection of ints",
            context={"field": "retryable_statuses", "value": statuses},
            cause=exc,
        ) from exc
    bad = [s for s in frozen if not isinstance(s, int) or isinstance(s, bool)]
    if bad:
        raise RetryifyConfigurationError(
            message=f"{owner}.retryable_statuses contains non-integer values: {bad!r}",
            context={"field": "retryable_statuses", "value": bad},
        )
    return frozen


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryAfterConfig:
    """Configuration for :func:`~retryify.with_retry_after`.

    Parameters
    ----------
    max_retries:
        Retry budget used when no *strategy* is given: the default policy is
        ``upto(max_retries, zero())``, i.e. respect the server's delay
        exactly, at most *max_retries* times.  Defaults to ``0`` (no
        retries).
    strategy:
        Backoff policy factory, called once per request chain.  Its delays
        are **added** to the server's ``Retry-After`` delay and its
        exhaustion stops retrying even when the server sent a valid header.
        Overrides *max_retries*.
    retryable_statuses:
        Statuses whose ``Retry-After`` header is honoured.  An empty set
        disables retrying.
    max_server_delay:
        Ceiling in milliseconds on the delay the server may ask for.  A
        larger value raises :class:`~retryify.RetryifyConstraintError`
        instead of being clamped.  ``None``, negative or NaN means no
        ceiling.
    metrics:
        Optional :class:`~retryify.observability.MetricsHook`.
    """

    max_retries: int = 0

    strategy: StrategyFactory | None = None

    retryable_statuses: frozenset[int] = DEFAULT_RETRY_AFTER_STATUSES

    max_server_delay: float | None = None

    metrics: Any | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise RetryifyConfigurationError(
                message=f"max_retries must be an int >= 0, got {self.max_retries!r}",
                context={"field": "max_retries", "value": self.max_retries},
            )
        if self.strategy is not None:
            _check_strategy(self.strategy, "RetryAfterConfig")
        object.__setattr__(
            self,
            "retryable_statuses",
            _freeze_statuses(self.retryable_statuses, "RetryAfterConfig"),
        )
        ceiling = self.max_server_delay
        if ceiling is not None and (math.isnan(ceiling) or ceiling < 0):
            object.__setattr__(self, "max_server_delay", None)

    def new_policy(self) -> BackoffPolicy:
        """Create the backoff policy for one request chain."""
        if self.strategy is not None:
            return self.strategy()
        return upto(self.max_retries, zero())


@dataclass(frozen=True)
class RetryStatusConfig:
    """Configuration for :func:`~retryify.with_retry_status`.

    Parameters
    ----------
    strategy:
        Backoff policy factory, called once per request chain.  **Required.**
        The policy alone decides both the wait and when to stop.
    retryable_statuses:
        Statuses treated as transient.  An empty set disables retrying.
    metrics:
        Optional :class:`~retryify.observability.MetricsHook`.
    """

    strategy: StrategyFactory

    retryable_statuses: frozenset[int] = field(
        default=DEFAULT_RETRY_STATUS_STATUSES,
    )

    metrics: Any | None = None

    def __post_init__(self) -> None:
        _check_strategy(self.strategy, "RetryStatusConfig")
        object.__setattr__(
            self,
            "retryable_statuses",
            _freeze_statuses(self.retryable_statuses, "RetryStatusConfig"),
        )

    def new_policy(self) -> BackoffPolicy:
        return self.strategy()


@dataclass(frozen=True)
class AuthorizationConfig:
    """Configuration for :func:`~retryify.with_authorization`.

    Parameters
    ----------
    token_provider:
        Supplies :class:`~retryify.TokenPair` credentials.  Either an object
        with a ``get_token()`` method or a zero-argument callable; both may
        be sync or async.  **Required.**  Never logged.
    strategy:
        Backoff policy factory governing the cadence of 401-triggered
        retries only.  **Required.**  Use ``lambda: upto(1, zero())`` for a
        single immediate retry with a fresh token.
    metrics:
        Optional :class:`~retryify.observability.MetricsHook`.
    """

    token_provider: Any

    strategy: StrategyFactory

    metrics: Any | None = None

    def __post_init__(self) -> None:
        provider = self.token_provider
        if not (callable(getattr(provider, "get_token", None)) or callable(provider)):
            raise RetryifyConfigurationError(
                message=(
                    "token_provider must be callable or expose a get_token() method"
                ),
                context={"field": "token_provider"},
            )
        _check_strategy(self.strategy, "AuthorizationConfig")

    def new_policy(self) -> BackoffPolicy:
        return self.strategy()

    def __repr__(self) -> str:
        """Hide the provider to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            if f.name == "token_provider":
                parts.append(f"token_provider=<{type(self.token_provider).__name__}>")
            else:
                parts.append(f"{f.name}={getattr(self, f.name)!r}")
        return f"AuthorizationConfig({', '.join(parts)})"
