"""Unit tests for retryify/middleware/engine.py.

Covers:
- dispose_body (open, closed, failing, sync-only streams)
- policy_delay
- RetryLoop state machine: passthrough, retry, exhaustion, refresh,
  range errors, non-replayable bodies, metrics, concurrency
"""

from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from helpers import (
    FailingCloseStream,
    OpenStream,
    PolicyFactory,
    ScriptedSend,
    make_response,
)
from retryify.backoff import EXHAUSTED, Delay
from retryify.cancellation import MAX_TIMER_DELAY_MS
from retryify.errors import RetryifyBodyNotReplayableError, RetryifyRangeError
from retryify.middleware import engine
from retryify.middleware.engine import (
    DISPOSE_REASON,
    RetryLoop,
    dispose_body,
    policy_delay,
)
from retryify.models import AttemptContext, RequestOptions

RETRYABLE = frozenset({503})


def make_loop(send, factory, **kwargs) -> RetryLoop:
    return RetryLoop(
        send,
        middleware="test",
        retryable_statuses=kwargs.pop("retryable_statuses", RETRYABLE),
        new_policy=factory,
        **kwargs,
    )


def ctx(options: RequestOptions | None = None) -> AttemptContext:
    return AttemptContext("https://api.example.com/items", options or RequestOptions())


# ---------------------------------------------------------------------------
# dispose_body
# ---------------------------------------------------------------------------

class TestDisposeBody:
    async def test_closes_open_stream(self):
        stream = OpenStream()
        response = make_response(503, stream=stream)
        assert await dispose_body(response) is True
        assert stream.closed is True
        assert response.is_closed

    async def test_already_closed_is_noop(self):
        response = make_response(503, content=b"read already")
        assert response.is_closed
        assert await dispose_body(response) is True

    async def test_failure_is_swallowed(self, metrics):
        response = make_response(503, stream=FailingCloseStream())
        assert await dispose_body(response, metrics, {"middleware": "t"}) is False
        assert metrics.names() == ["retryify.dispose_failures_total"]

    async def test_sync_only_stream_is_swallowed(self):
        class SyncStream(httpx.SyncByteStream):
            def __iter__(self):
                yield b"x"

        response = httpx.Response(503, stream=SyncStream())
        assert await dispose_body(response) is False

    def test_reason_tag(self):
        assert DISPOSE_REASON == "Retry scheduled"


# ---------------------------------------------------------------------------
# policy_delay
# ---------------------------------------------------------------------------

class TestPolicyDelay:
    def test_returns_policy_delay(self):
        policy = PolicyFactory([250])()
        assert policy_delay(make_response(503), policy) == 250

    def test_exhausted_is_none(self):
        policy = PolicyFactory([])()
        assert policy_delay(make_response(503), policy) is None


# ---------------------------------------------------------------------------
# RetryLoop
# ---------------------------------------------------------------------------

class TestRetryLoopPassthrough:
    async def test_success_returns_after_one_call(self):
        ok = make_response(200)
        send = ScriptedSend(ok)
        factory = PolicyFactory([0, 0])
        assert await make_loop(send, factory).run(ctx()) is ok
        assert send.call_count == 1
        assert factory.policies[0].calls == 0

    async def test_non_retryable_status_returned_unchanged(self):
        bad = make_response(400)
        send = ScriptedSend(bad)
        assert await make_loop(send, PolicyFactory([0])).run(ctx()) is bad
        assert send.call_count == 1

    async def test_success_listed_as_retryable_still_short_circuits(self):
        send = ScriptedSend(make_response(200))
        loop = make_loop(send, PolicyFactory([0]), retryable_statuses=frozenset({200}))
        await loop.run(ctx())
        assert send.call_count == 1

    async def test_empty_status_set_disables_retry(self):
        send = ScriptedSend(make_response(503))
        loop = make_loop(send, PolicyFactory([0]), retryable_statuses=frozenset())
        assert (await loop.run(ctx())).status_code == 503
        assert send.call_count == 1


class TestRetryLoopRetries:
    @pytest.mark.parametrize("n", [0, 1, 3])
    async def test_n_delays_give_n_plus_one_calls(self, n):
        send = ScriptedSend(make_response(503))
        await make_loop(send, PolicyFactory([0] * n)).run(ctx())
        assert send.call_count == n + 1

    async def test_returns_first_non_retryable_response(self):
        ok = make_response(200)
        send = ScriptedSend(make_response(503), make_response(503), ok)
        assert await make_loop(send, PolicyFactory([0] * 5)).run(ctx()) is ok
        assert send.call_count == 3

    async def test_stale_body_closed_before_retry(self):
        stream = OpenStream()
        send = ScriptedSend(make_response(503, stream=stream), make_response(200))
        await make_loop(send, PolicyFactory([0])).run(ctx())
        assert stream.closed is True

    async def test_last_response_body_left_open_on_exhaustion(self):
        stream = OpenStream()
        last = make_response(503, stream=stream)
        send = ScriptedSend(last)
        assert await make_loop(send, PolicyFactory([])).run(ctx()) is last
        assert stream.closed is False

    async def test_disposal_failure_does_not_block_retry(self):
        ok = make_response(200, content=b"done")
        send = ScriptedSend(make_response(503, stream=FailingCloseStream()), ok)
        result = await make_loop(send, PolicyFactory([0])).run(ctx())
        assert result is ok
        assert result.content == b"done"
        assert send.call_count == 2

    async def test_same_context_resent_verbatim(self):
        options = RequestOptions(method="post", headers={"X-Id": "1"}, content=b"body")
        send = ScriptedSend(make_response(503), make_response(200))
        await make_loop(send, PolicyFactory([0])).run(ctx(options))
        assert send.calls[0] == send.calls[1]
        assert send.calls[0][1] is options

    async def test_fresh_policy_per_run(self):
        factory = PolicyFactory([0])
        loop = make_loop(ScriptedSend(make_response(503)), factory)
        await loop.run(ctx())
        await loop.run(ctx())
        assert len(factory.policies) == 2
        assert factory.policies[0] is not factory.policies[1]

    async def test_refresh_runs_before_each_retry_only(self):
        refreshed: list[int] = []

        async def refresh(context: AttemptContext) -> AttemptContext:
            refreshed.append(len(refreshed))
            return context.with_authorization(f"Bearer t{len(refreshed)}")

        send = ScriptedSend(make_response(503))
        await make_loop(send, PolicyFactory([0, 0]), refresh=refresh).run(ctx())
        assert len(refreshed) == 2
        assert "Authorization" not in send.calls[0][1].headers
        assert send.calls[1][1].headers["Authorization"] == "Bearer t1"
        assert send.calls[2][1].headers["Authorization"] == "Bearer t2"

    async def test_custom_planner_none_stops(self):
        send = ScriptedSend(make_response(503))
        loop = make_loop(send, PolicyFactory([0]), plan_delay=lambda r, p: None)
        await loop.run(ctx())
        assert send.call_count == 1


class TestRetryLoopFailures:
    async def test_delay_above_timer_maximum_raises_range_error(self):
        stream = OpenStream()
        send = ScriptedSend(make_response(503, stream=stream))
        loop = make_loop(send, PolicyFactory([MAX_TIMER_DELAY_MS + 1]))
        with pytest.raises(RetryifyRangeError):
            await loop.run(ctx())
        assert send.call_count == 1
        assert stream.closed is False

    async def test_streaming_request_body_is_not_replayed(self):
        async def body():
            yield b"chunk"

        options = RequestOptions(method="POST", content=body())
        send = ScriptedSend(make_response(503))
        with pytest.raises(RetryifyBodyNotReplayableError) as excinfo:
            await make_loop(send, PolicyFactory([0])).run(ctx(options))
        assert send.call_count == 1
        assert excinfo.value.context["response"].status_code == 503

    async def test_streaming_body_fine_when_no_retry_needed(self):
        options = RequestOptions(method="POST", content=iter([b"a", b"b"]))
        send = ScriptedSend(make_response(201))
        assert (await make_loop(send, PolicyFactory([0])).run(ctx(options))).status_code == 201

    async def test_transport_errors_propagate(self):
        async def broken(target, options):
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await make_loop(broken, PolicyFactory([0])).run(ctx())


class TestRetryLoopObservability:
    async def test_metrics_emitted(self, metrics):
        send = ScriptedSend(make_response(503), make_response(200))
        await make_loop(send, PolicyFactory([0]), metrics=metrics).run(ctx())
        assert metrics.names() == [
            "retryify.attempts_total",
            "retryify.retries_total",
            "retryify.attempts_total",
        ]
        assert metrics.increments[1]["tags"] == {"middleware": "test", "reason": "503"}
        assert [t["name"] for t in metrics.timings] == ["retryify.retry_wait_ms"]

    async def test_retry_logged_as_structured_info(self):
        records = await self._run_with_handler(logging.INFO)
        retries = [r for r in records if r.getMessage() == "Retry scheduled"]
        assert len(retries) == 1
        assert retries[0].levelno == logging.INFO
        fields = retries[0].extra_fields
        assert fields["delay_ms"] == 5
        assert fields["status_code"] == 503
        json.dumps(fields)

    async def test_retries_quiet_at_default_level(self):
        assert await self._run_with_handler(logging.WARNING) == []

    async def _run_with_handler(self, level: int) -> list[logging.LogRecord]:
        records: list[logging.LogRecord] = []
        handler = logging.Handler()
        handler.emit = records.append
        old_level = engine.log.level
        engine.log.addHandler(handler)
        engine.log.setLevel(level)
        try:
            send = ScriptedSend(make_response(503), make_response(200))
            await make_loop(send, PolicyFactory([5])).run(ctx())
        finally:
            engine.log.removeHandler(handler)
            engine.log.setLevel(old_level)
        return records


class TestRetryLoopConcurrency:
    async def test_concurrent_runs_do_not_share_policies(self):
        factory = PolicyFactory([0, 0])
        send = ScriptedSend(make_response(503))
        loop = make_loop(send, factory)
        await asyncio.gather(*(loop.run(ctx()) for _ in range(4)))
        assert len(factory.policies) == 4
        assert send.call_count == 4 * 3
        assert all(p.calls == 3 for p in factory.policies)

    async def test_exhausted_sentinel_identity(self):
        policy = PolicyFactory([])()
        assert policy.next_backoff() is EXHAUSTED
        assert PolicyFactory([7])().next_backoff() == Delay(7)
