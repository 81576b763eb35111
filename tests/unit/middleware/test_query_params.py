"""Unit tests for retryify/middleware/query_params.py."""

from __future__ import annotations

import httpx
import pytest

from helpers import ScriptedSend, make_response
from retryify.middleware.query_params import (
    merge_query,
    with_query_param,
    with_query_params,
)
from retryify.models import RequestOptions

URL = "https://api.example.com/items"


def sent_params(send: ScriptedSend) -> list[tuple[str, str]]:
    return httpx.URL(send.calls[0][0]).params.multi_items()


class TestWithQueryParams:
    async def test_params_added(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"api_key": "k", "lang": "en"})(send)(URL)
        assert sent_params(send) == [("api_key", "k"), ("lang", "en")]

    async def test_repeat_format_for_sequences(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"tags": ["a", "b"]})(send)(URL)
        assert sent_params(send) == [("tags", "a"), ("tags", "b")]

    async def test_brackets_format_for_sequences(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"tags": ["a", "b"]}, array_format="brackets")(send)(URL)
        assert sent_params(send) == [("tags[]", "a"), ("tags[]", "b")]

    async def test_brackets_leave_scalars_alone(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"q": "x"}, array_format="brackets")(send)(URL)
        assert sent_params(send) == [("q", "x")]

    async def test_empty_sequence_skipped(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"tags": [], "q": "x"})(send)(URL)
        assert sent_params(send) == [("q", "x")]

    async def test_target_query_follows_defaults(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"lang": "en"})(send)(URL + "?lang=fr&page=2")
        assert sent_params(send) == [("lang", "en"), ("lang", "fr"), ("page", "2")]

    async def test_options_params_forwarded_unchanged(self):
        send = ScriptedSend(make_response(200))
        options = RequestOptions(params={"lang": "fr"})
        await with_query_params({"lang": "en"})(send)(URL, options)
        assert send.calls[0][1] is options

    async def test_string_target_stays_string(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"q": "x"})(send)("/items")
        target = send.calls[0][0]
        assert isinstance(target, str)
        assert target.startswith("/items?")

    async def test_url_target_stays_url(self):
        send = ScriptedSend(make_response(200))
        await with_query_params({"q": "x"})(send)(httpx.URL(URL))
        target = send.calls[0][0]
        assert isinstance(target, httpx.URL)
        assert target.host == "api.example.com"
        assert target.params["q"] == "x"

    def test_empty_mapping_is_passthrough(self):
        send = ScriptedSend(make_response(200))
        assert with_query_params({})(send) is send

    def test_unknown_array_format_rejected(self):
        with pytest.raises(ValueError, match="array_format"):
            with_query_params({"q": "x"}, array_format="comma")


class TestWithQueryParam:
    async def test_single_param(self):
        send = ScriptedSend(make_response(200))
        await with_query_param("q", "x")(send)(URL)
        assert sent_params(send) == [("q", "x")]

    async def test_single_param_with_sequence(self):
        send = ScriptedSend(make_response(200))
        await with_query_param("ids", ["1", "2"], array_format="brackets")(send)(URL)
        assert sent_params(send) == [("ids[]", "1"), ("ids[]", "2")]


def test_merge_query_keeps_path_and_fragment():
    merged = merge_query("https://api.example.com/a/b?x=1#top", [("y", "2")])
    url = httpx.URL(merged)
    assert url.path == "/a/b"
    assert url.fragment == "top"
    assert url.params.multi_items() == [("y", "2"), ("x", "1")]
