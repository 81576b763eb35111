"""``Authorization`` header injection with credential refresh on ``401``."""

from __future__ import annotations

import inspect
from typing import Any

import httpx

from retryify.config import AUTHORIZATION_RETRY_STATUSES, AuthorizationConfig
from retryify.errors import RetryifyConfigurationError
from retryify.models import (
    AUTHORIZATION_HEADER,
    AttemptContext,
    RequestOptions,
    Send,
    Target,
    TokenPair,
)
from retryify.observability import NoopMetricsHook, get_logger

from .engine import RetryLoop

log = get_logger("retryify.authorization")


def validate_token(token: Any) -> TokenPair:
    """Return *token* as a :class:`TokenPair`, or raise if it is unusable.

    Accepts a :class:`TokenPair` or a ``(value, scheme)`` tuple.  Both parts
    must be non-empty strings.
    """
    if isinstance(token, tuple) and len(token) == 2:
        token = TokenPair(*token)
    if (
        not isinstance(token, TokenPair)
        or not isinstance(token.value, str)
        or not isinstance(token.scheme, str)
        or not token.value
        or not token.scheme
    ):
        raise RetryifyConfigurationError(
            message=(
                "Token provider must return a TokenPair with a non-empty "
                "'value' (str) and 'scheme' (str)"
            ),
            context={"field": "token_provider", "returned_type": type(token).__name__},
        )
    return token


class _TokenSource:
    """Calls the configured provider and validates what it returns."""

    __slots__ = ("_call", "_metrics")

    def __init__(self, provider: Any, metrics: Any) -> None:
        get_token = getattr(provider, "get_token", None)
        self._call = get_token if callable(get_token) else provider
        self._metrics = metrics

    async def acquire(self) -> TokenPair:
        try:
            result = self._call()
            if inspect.isawaitable(result):
                result = await result
        except RetryifyConfigurationError:
            raise
        except Exception as exc:
            raise RetryifyConfigurationError(
                message=f"Token provider failed: {exc}",
                context={"field": "token_provider"},
                cause=exc,
            ) from exc

        token = validate_token(result)
        self._metrics.increment(
            "retryify.token_refresh_total", tags={"middleware": "authorization"},
        )
        log.debug(
            "Token acquired",
            extra={"extra_fields": {"scheme": token.scheme}},
        )
        return token


def with_authorization(config: AuthorizationConfig):
    """Middleware factory: inject ``Authorization`` and retry ``401`` with a
    freshly acquired token.

    * If the caller already set ``Authorization``, the first attempt is sent
      as-is and no token is acquired for it.
    * Every ``401``-triggered retry acquires a new token and overwrites the
      header, including a caller-supplied one.
    * The strategy paces the ``401`` retries; its exhaustion returns the last
      ``401`` response.  Other statuses pass through untouched.
    * A provider that raises, or returns an incomplete token, raises
      :class:`~retryify.RetryifyConfigurationError`.

    Example::

        from retryify.backoff import upto, zero

        send = with_authorization(AuthorizationConfig(
            token_provider=lambda: TokenPair("my-token", "Bearer"),
            strategy=lambda: upto(1, zero()),
        ))(send)
    """
    metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
    tokens = _TokenSource(config.token_provider, metrics)

    async def refresh(context: AttemptContext) -> AttemptContext:
        token = await tokens.acquire()
        return context.with_authorization(token.header_value)

    def middleware(send: Send) -> Send:
        loop = RetryLoop(
            send,
            middleware="authorization",
            retryable_statuses=AUTHORIZATION_RETRY_STATUSES,
            new_policy=config.new_policy,
            refresh=refresh,
            metrics=metrics,
        )

        async def send_with_authorization(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            context = AttemptContext(target, options or RequestOptions())
            if AUTHORIZATION_HEADER not in context.options.headers:
                context = await refresh(context)
            return await loop.run(context)

        return send_with_authorization

    return middleware
