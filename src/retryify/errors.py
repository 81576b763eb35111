"""Full error hierarchy for the retryify middlewares.

Every public error class inherits from RetryifyError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Only genuine failures are raised.  A non-retryable status, an invalid
``Retry-After`` header, or an exhausted backoff policy are *not* errors:
the middleware simply returns the last response.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the package can raise."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    RANGE_ERROR = "RANGE_ERROR"
    CANCELLED = "CANCELLED"
    BODY_NOT_REPLAYABLE = "BODY_NOT_REPLAYABLE"
    HTTP_ERROR = "HTTP_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class RetryifyError(Exception):
    """Base exception for all retryify errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: BaseException | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Retry-loop errors
# ---------------------------------------------------------------------------

class RetryifyConfigurationError(RetryifyError):
    """A middleware was configured incorrectly, or a collaborator it was
    configured with misbehaved (e.g. the token provider failed or returned
    an incomplete token pair).

    Context keys: ``field``, ``value``, ``constraint``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class RetryifyConstraintError(RetryifyError):
    """The server asked for a delay longer than the configured ceiling.

    Context keys: ``server_delay_ms``, ``max_server_delay_ms``, ``status_code``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CONSTRAINT_VIOLATION,
            message=message,
            context=context,
            cause=cause,
        )


class RetryifyRangeError(RetryifyError):
    """A wait exceeds the largest representable timer duration
    (``2**31 - 1`` milliseconds, about 24.8 days).

    Context keys: ``delay_ms``, ``max_delay_ms``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.RANGE_ERROR,
            message=message,
            context=context,
            cause=cause,
        )


class RetryifyCancelledError(RetryifyError):
    """The caller's cancellation token fired during a wait or a send.

    Context keys: ``reason``, ``phase`` (``"wait"`` or ``"send"``).
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.CANCELLED,
            message=message,
            context=context,
            cause=cause,
        )


class RetryifyBodyNotReplayableError(RetryifyError):
    """A retry was required but the request body is a single-use stream
    that cannot be sent a second time.

    Context keys: ``status_code``, ``attempt``, ``response``.
    """

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            code=ErrorCode.BODY_NOT_REPLAYABLE,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Response errors (raised by ``with_response_error``)
# ---------------------------------------------------------------------------

def _response_url(response: httpx.Response) -> str:
    try:
        return str(response.request.url)
    except RuntimeError:
        # Responses built by hand carry no request.
        return ""


class RetryifyResponseError(RetryifyError):
    """A response carried a status the caller asked to treat as a failure.

    The failing :class:`httpx.Response` is kept on :attr:`response` so the
    caller can still inspect or close it.

    Context keys: ``status_code``, ``reason_phrase``, ``url``.
    """

    default_code: str = ErrorCode.HTTP_ERROR

    def __init__(
        self,
        response: httpx.Response,
        message: str | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        url = _response_url(response)
        self.response: httpx.Response = response
        self.status_code: int = response.status_code
        super().__init__(
            code=self.default_code,
            message=message
            or f"HTTP {response.status_code} {response.reason_phrase}: {url}",
            context={
                "status_code": response.status_code,
                "reason_phrase": response.reason_phrase,
                "url": url,
                **(context or {}),
            },
            cause=cause,
        )


class RetryifyAuthError(RetryifyResponseError):
    """The server returned 401 -- the credentials are missing or rejected."""

    default_code = ErrorCode.AUTH_ERROR


class RetryifyPermissionError(RetryifyResponseError):
    """The server returned 403 -- the credentials lack access."""

    default_code = ErrorCode.PERMISSION_ERROR


class RetryifyNotFoundError(RetryifyResponseError):
    """The server returned 404."""

    default_code = ErrorCode.NOT_FOUND


class RetryifyRateLimitError(RetryifyResponseError):
    """The server returned 429 -- too many requests."""

    default_code = ErrorCode.RATE_LIMITED


class RetryifyServerError(RetryifyResponseError):
    """The server returned a 5xx status."""

    default_code = ErrorCode.SERVER_ERROR
