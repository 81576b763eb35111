"""Test doubles shared across the retryify test suite."""

from __future__ import annotations

from typing import Any

import httpx

from retryify.backoff import EXHAUSTED, BackoffStep, Delay
from retryify.models import RequestOptions, Target


def make_response(
    status_code: int = 200,
    headers: dict[str, str] | None = None,
    stream: httpx.AsyncByteStream | None = None,
    content: bytes = b"",
) -> httpx.Response:
    """Build an httpx.Response with a dummy request attached."""
    if stream is not None:
        resp = httpx.Response(status_code, headers=headers or {}, stream=stream)
    else:
        resp = httpx.Response(status_code, headers=headers or {}, content=content)
    resp.request = httpx.Request("GET", "https://api.example.com/test")
    return resp


class OpenStream(httpx.AsyncByteStream):
    """An unread, one-shot body that records whether it was closed."""

    def __init__(self, chunks: list[bytes] | None = None) -> None:
        self.chunks = chunks or [b"payload"]
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class FailingCloseStream(OpenStream):
    """A body whose release always fails."""

    async def aclose(self) -> None:
        raise RuntimeError("stream already released")


class ScriptedSend:
    """A fake send that replays *responses* in order and records each call."""

    def __init__(self, *responses: httpx.Response) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[Target, RequestOptions]] = []

    async def __call__(
        self, target: Target, options: RequestOptions | None = None,
    ) -> httpx.Response:
        self.calls.append((target, options or RequestOptions()))
        if len(self._responses) > 1:
            return self._responses.pop(0)
        return self._responses[0]

    @property
    def call_count(self) -> int:
        return len(self.calls)


class ScriptedPolicy:
    """Backoff policy emitting *delays* (ms) in order, then EXHAUSTED."""

    def __init__(self, delays: list[float]) -> None:
        self._delays = list(delays)
        self.calls = 0
        self.resets = 0

    def next_backoff(self) -> BackoffStep:
        self.calls += 1
        if not self._delays:
            return EXHAUSTED
        return Delay(self._delays.pop(0))

    def reset_backoff(self) -> None:
        self.resets += 1


class PolicyFactory:
    """Strategy factory that records every policy it hands out."""

    def __init__(self, delays: list[float]) -> None:
        self._delays = delays
        self.policies: list[ScriptedPolicy] = []

    def __call__(self) -> ScriptedPolicy:
        policy = ScriptedPolicy(self._delays)
        self.policies.append(policy)
        return policy


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def names(self) -> list[str]:
        return [entry["name"] for entry in self.increments]
