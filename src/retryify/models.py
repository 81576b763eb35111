"""Data models shared by the middlewares.

Contains the request representation that is re-sent on every attempt
(:class:`RequestOptions`, :class:`AttemptContext`), the credential types used
by the authorization middleware (:class:`TokenPair`, :class:`TokenProvider`)
and the callable shapes that middlewares compose over (:data:`Send`,
:data:`Middleware`).
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

import httpx

if TYPE_CHECKING:
    from retryify.cancellation import CancellationToken


# ---------------------------------------------------------------------------
# Request representation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestOptions:
    """Everything about a request except its target URL.

    Instances are immutable: middlewares derive new ones with
    :meth:`with_header` / :meth:`with_headers` instead of mutating.

    Attributes
    ----------
    method:
        HTTP method.  Defaults to ``GET``.
    headers:
        Request headers.  Any mapping is accepted and normalised to
        :class:`httpx.Headers`.
    params:
        Query parameters, forwarded to httpx unchanged.
    content:
        Raw request body (``bytes``/``str``, or an iterator for streaming).
        Iterator bodies are single-use and cannot be retried.
    json:
        JSON-serialisable request body.
    timeout:
        Per-request timeout, forwarded to httpx unchanged.
    cancel:
        Optional :class:`~retryify.cancellation.CancellationToken` observed
        while waiting between attempts and during the send itself.
    """

    method: str = "GET"
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    params: Any = None
    content: Any = None
    json: Any = None
    timeout: Any = None
    cancel: CancellationToken | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, httpx.Headers):
            object.__setattr__(self, "headers", httpx.Headers(self.headers))
        object.__setattr__(self, "method", self.method.upper())

    @property
    def has_replayable_body(self) -> bool:
        """``False`` when the body is a one-shot stream."""
        return not isinstance(self.content, (Iterator, AsyncIterator))

    def with_header(self, name: str, value: str) -> RequestOptions:
        """Return a copy with header *name* set to *value*."""
        headers = self.headers.copy()
        headers[name] = value
        return replace(self, headers=headers)

    def with_headers(self, extra: dict[str, str]) -> RequestOptions:
        """Return a copy with every header in *extra* set."""
        headers = self.headers.copy()
        headers.update(extra)
        return replace(self, headers=headers)


Target = Union[str, httpx.URL]


@dataclass(frozen=True)
class AttemptContext:
    """The (target, options) pair re-sent verbatim on every attempt.

    Only the ``Authorization`` header may differ between attempts, and only
    when the authorization middleware refreshes it.
    """

    target: Target
    options: RequestOptions

    def with_authorization(self, value: str) -> AttemptContext:
        return AttemptContext(
            self.target, self.options.with_header(AUTHORIZATION_HEADER, value)
        )


Send = Callable[[Target, RequestOptions], Awaitable[httpx.Response]]
"""A single "perform one request" operation."""

Middleware = Callable[[Send], Send]
"""Wraps a :data:`Send` with extra behaviour and returns a new one."""


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

AUTHORIZATION_HEADER = "Authorization"


@dataclass(frozen=True)
class TokenPair:
    """A credential and the scheme it is presented with.

    Rendered as ``"<scheme> <value>"``, e.g. ``"Bearer eyJhbGciOi..."``.
    """

    value: str
    scheme: str = "Bearer"

    @property
    def header_value(self) -> str:
        return f"{self.scheme} {self.value}"

    def __repr__(self) -> str:
        masked = f"...{self.value[-4:]}" if len(self.value) >= 8 else "****"
        return f"TokenPair(value='{masked}', scheme={self.scheme!r})"


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies credentials on demand.

    ``get_token`` may be a plain method or a coroutine.  It is called before
    the first request (unless the caller already set ``Authorization``) and
    again before every retry after a ``401``.
    """

    def get_token(self) -> TokenPair | Awaitable[TokenPair]:
        ...


# ---------------------------------------------------------------------------
# Retry loop state
# ---------------------------------------------------------------------------

class RetryState(str, Enum):
    """States of the retry loop."""

    ATTEMPTING = "attempting"
    EVALUATING = "evaluating"
    COMPUTING_DELAY = "computing_delay"
    DISPOSING = "disposing"
    WAITING = "waiting"
    REFRESHING = "refreshing"
    DONE = "done"
    FAILED = "failed"
