"""Unit tests for retryify/middleware/response_error.py."""

from __future__ import annotations

import pytest

from helpers import ScriptedSend, make_response
from retryify.errors import (
    ErrorCode,
    RetryifyAuthError,
    RetryifyNotFoundError,
    RetryifyPermissionError,
    RetryifyRateLimitError,
    RetryifyResponseError,
    RetryifyServerError,
)
from retryify.middleware.response_error import default_error_mapper, with_response_error

URL = "https://api.example.com/items"


class TestDefaultErrorMapper:
    @pytest.mark.parametrize(
        "status, error_cls, code",
        [
            (401, RetryifyAuthError, ErrorCode.AUTH_ERROR),
            (403, RetryifyPermissionError, ErrorCode.PERMISSION_ERROR),
            (404, RetryifyNotFoundError, ErrorCode.NOT_FOUND),
            (429, RetryifyRateLimitError, ErrorCode.RATE_LIMITED),
            (500, RetryifyServerError, ErrorCode.SERVER_ERROR),
            (503, RetryifyServerError, ErrorCode.SERVER_ERROR),
            (400, RetryifyResponseError, ErrorCode.HTTP_ERROR),
            (418, RetryifyResponseError, ErrorCode.HTTP_ERROR),
        ],
    )
    def test_mapping(self, status, error_cls, code):
        error = default_error_mapper(make_response(status))
        assert type(error) is error_cls
        assert error.code is code

    def test_response_attached(self):
        response = make_response(404)
        error = default_error_mapper(response)
        assert error.response is response
        assert error.status_code == 404
        assert error.context["url"] == "https://api.example.com/test"
        assert "404 Not Found" in error.message


class TestWithResponseError:
    async def test_success_returned(self):
        ok = make_response(200)
        assert await with_response_error()(ScriptedSend(ok))(URL) is ok

    async def test_redirect_not_raised(self):
        assert (await with_response_error()(ScriptedSend(make_response(304)))(URL)).status_code == 304

    async def test_error_status_raises_mapped_error(self):
        with pytest.raises(RetryifyNotFoundError):
            await with_response_error()(ScriptedSend(make_response(404)))(URL)

    async def test_status_map_overrides(self):
        class Gone(Exception):
            pass

        send = with_response_error(status_map={410: lambda r: Gone(r.status_code)})(
            ScriptedSend(make_response(410))
        )
        with pytest.raises(Gone):
            await send(URL)

    async def test_async_mapper(self):
        async def mapper(response):
            await response.aread()
            return ValueError(response.text)

        send = with_response_error(default_mapper=mapper)(
            ScriptedSend(make_response(500, content=b"database down"))
        )
        with pytest.raises(ValueError, match="database down"):
            await send(URL)

    async def test_custom_predicate(self):
        send = with_response_error(throw_on_status=lambda s: s >= 500)(
            ScriptedSend(make_response(404))
        )
        assert (await send(URL)).status_code == 404

        send = with_response_error(throw_on_status=lambda s: s == 202)(
            ScriptedSend(make_response(202))
        )
        with pytest.raises(RetryifyResponseError):
            await send(URL)
