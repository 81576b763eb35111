"""retryify: retry middlewares for async HTTP sends.

Public re-exports
-----------------

* **Middlewares:** :func:`with_retry_after`, :func:`with_retry_status`,
  :func:`with_authorization`, plus :func:`with_base_url`,
  :func:`with_headers`, :func:`with_response_error`, :func:`with_logging`
* **Composition:** :func:`compose`, :func:`pipeline`
* **Transport:** :class:`HttpxTransport`
* **Configuration:** :class:`RetryAfterConfig`, :class:`RetryStatusConfig`,
  :class:`AuthorizationConfig`
* **Models:** :class:`RequestOptions`, :class:`TokenPair`,
  :class:`CancellationToken`
* **Errors:** Every :class:`RetryifyError` subclass and :class:`ErrorCode`

Usage::

    from retryify import (
        HttpxTransport, RetryStatusConfig, RetryAfterConfig,
        pipeline, with_retry_after, with_retry_status,
    )
    from retryify.backoff import exponential, upto

    async with HttpxTransport() as transport:
        send = pipeline(
            with_retry_after(RetryAfterConfig(max_retries=3)),
            with_retry_status(RetryStatusConfig(
                strategy=lambda: upto(5, exponential(base_ms=200)),
            )),
        )(transport)
        response = await send("https://api.example.com/data")
"""

from __future__ import annotations

# ── Backoff ─────────────────────────────────────────────────────────────
from retryify.backoff import EXHAUSTED, BackoffPolicy, Delay

# ── Cancellation ────────────────────────────────────────────────────────
from retryify.cancellation import MAX_TIMER_DELAY_MS, CancellationToken, wait_for

# ── Configuration ───────────────────────────────────────────────────────
from retryify.config import (
    AUTHORIZATION_RETRY_STATUSES,
    DEFAULT_RETRY_AFTER_STATUSES,
    DEFAULT_RETRY_STATUS_STATUSES,
    AuthorizationConfig,
    RetryAfterConfig,
    RetryStatusConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
from retryify.errors import (
    ErrorCode,
    RetryifyAuthError,
    RetryifyBodyNotReplayableError,
    RetryifyCancelledError,
    RetryifyConfigurationError,
    RetryifyConstraintError,
    RetryifyError,
    RetryifyNotFoundError,
    RetryifyPermissionError,
    RetryifyRangeError,
    RetryifyRateLimitError,
    RetryifyResponseError,
    RetryifyServerError,
)

# ── Middlewares ─────────────────────────────────────────────────────────
from retryify.middleware import (
    compose,
    parse_retry_after,
    pipeline,
    with_authorization,
    with_base_url,
    with_cookie,
    with_cookies,
    with_header,
    with_headers,
    with_logging,
    with_query_param,
    with_query_params,
    with_response_error,
    with_retry_after,
    with_retry_status,
)

# ── Models ──────────────────────────────────────────────────────────────
from retryify.models import (
    AttemptContext,
    Middleware,
    RequestOptions,
    RetryState,
    Send,
    TokenPair,
    TokenProvider,
)

# ── Transport ───────────────────────────────────────────────────────────
from retryify.transport import HttpxTransport

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Middlewares
    "with_retry_after",
    "with_retry_status",
    "with_authorization",
    "with_base_url",
    "with_header",
    "with_headers",
    "with_cookie",
    "with_cookies",
    "with_query_param",
    "with_query_params",
    "with_response_error",
    "with_logging",
    "compose",
    "pipeline",
    "parse_retry_after",
    # Transport
    "HttpxTransport",
    # Configuration
    "RetryAfterConfig",
    "RetryStatusConfig",
    "AuthorizationConfig",
    "DEFAULT_RETRY_AFTER_STATUSES",
    "DEFAULT_RETRY_STATUS_STATUSES",
    "AUTHORIZATION_RETRY_STATUSES",
    # Backoff
    "BackoffPolicy",
    "Delay",
    "EXHAUSTED",
    # Cancellation
    "CancellationToken",
    "MAX_TIMER_DELAY_MS",
    "wait_for",
    # Models
    "AttemptContext",
    "Middleware",
    "RequestOptions",
    "RetryState",
    "Send",
    "TokenPair",
    "TokenProvider",
    # Error base + code enum
    "RetryifyError",
    "ErrorCode",
    # Retry-loop errors
    "RetryifyConfigurationError",
    "RetryifyConstraintError",
    "RetryifyRangeError",
    "RetryifyCancelledError",
    "RetryifyBodyNotReplayableError",
    # Response errors
    "RetryifyResponseError",
    "RetryifyAuthError",
    "RetryifyPermissionError",
    "RetryifyNotFoundError",
    "RetryifyRateLimitError",
    "RetryifyServerError",
]
