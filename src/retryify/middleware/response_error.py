"""Turn failed responses into raised errors.

Place this middleware *outside* the retry middlewares so that only the
final response of a retry chain is mapped.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from retryify.errors import (
    RetryifyAuthError,
    RetryifyNotFoundError,
    RetryifyPermissionError,
    RetryifyRateLimitError,
    RetryifyResponseError,
    RetryifyServerError,
)
from retryify.models import RequestOptions, Send, Target

ResponseErrorMapper = Callable[[httpx.Response], "BaseException | Awaitable[BaseException]"]

_STATUS_ERRORS: dict[int, type[RetryifyResponseError]] = {
    401: RetryifyAuthError,
    403: RetryifyPermissionError,
    404: RetryifyNotFoundError,
    429: RetryifyRateLimitError,
}


def default_error_mapper(response: httpx.Response) -> RetryifyResponseError:
    """Map *response* to the matching :class:`RetryifyResponseError` subclass."""
    status = response.status_code
    error_cls = _STATUS_ERRORS.get(status)
    if error_cls is None:
        error_cls = RetryifyServerError if status >= 500 else RetryifyResponseError
    return error_cls(response)


def _is_error_status(status: int) -> bool:
    return status >= 400


def with_response_error(
    status_map: Mapping[int, ResponseErrorMapper] | None = None,
    default_mapper: ResponseErrorMapper | None = None,
    throw_on_status: Callable[[int], bool] | None = None,
):
    """Middleware factory: raise for responses the caller considers failures.

    Parameters
    ----------
    status_map:
        Per-status mappers.  Each receives the response and returns (or
        resolves to) the exception to raise.
    default_mapper:
        Mapper for statuses absent from *status_map*.  Defaults to
        :func:`default_error_mapper`.
    throw_on_status:
        Predicate selecting which statuses raise.  Defaults to ``>= 400``.
    """
    mappers: dict[int, ResponseErrorMapper] = dict(status_map or {})
    fallback: ResponseErrorMapper = default_mapper or default_error_mapper
    should_throw = throw_on_status or _is_error_status

    def middleware(send: Send) -> Send:
        async def send_with_response_error(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            response = await send(target, options or RequestOptions())
            if not should_throw(response.status_code):
                return response

            mapper = mappers.get(response.status_code, fallback)
            error: Any = mapper(response)
            if inspect.isawaitable(error):
                error = await error
            raise error

        return send_with_response_error

    return middleware
