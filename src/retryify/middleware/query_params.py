"""Default query parameters.

Parameters added here act as defaults: they are placed *before* the
target's own query string, so a server reading the last occurrence of a
key sees the request's value.  Parameters passed in
:attr:`RequestOptions.params <retryify.models.RequestOptions.params>` are
merged by httpx later and override both.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Literal, Union

import httpx

from retryify.models import RequestOptions, Send, Target

ArrayFormat = Literal["repeat", "brackets"]
QueryValue = Union[str, Sequence[str]]


def _expand(
    params: Mapping[str, QueryValue], array_format: ArrayFormat,
) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    for name, value in params.items():
        if isinstance(value, str):
            items.append((name, value))
            continue
        key = f"{name}[]" if array_format == "brackets" else name
        items.extend((key, v) for v in value)
    return items


def merge_query(target: Target, defaults: list[tuple[str, str]]) -> Target:
    """Return *target* with *defaults* placed before its own query items.

    Strings stay strings (relative or absolute); :class:`httpx.URL` stays a
    URL.
    """
    url = httpx.URL(target)
    merged = httpx.QueryParams(defaults + url.params.multi_items())
    result = url.copy_with(params=merged)
    return str(result) if isinstance(target, str) else result


def with_query_params(
    params: Mapping[str, QueryValue],
    *,
    array_format: ArrayFormat = "repeat",
):
    """Middleware factory: add default query parameters to every request.

    Parameters
    ----------
    params:
        Parameter names mapped to a value or a sequence of values.  Empty
        sequences are skipped; an empty mapping returns a pass-through
        middleware.
    array_format:
        ``"repeat"`` (``?tags=a&tags=b``, the default) or ``"brackets"``
        (``?tags[]=a&tags[]=b``) for sequence values.
    """
    if array_format not in ("repeat", "brackets"):
        raise ValueError(
            f"array_format must be 'repeat' or 'brackets', got {array_format!r}"
        )
    defaults = _expand(params, array_format)

    def middleware(send: Send) -> Send:
        if not params:
            return send

        async def send_with_query_params(
            target: Target, options: RequestOptions | None = None,
        ) -> httpx.Response:
            return await send(merge_query(target, defaults), options or RequestOptions())

        return send_with_query_params

    return middleware


def with_query_param(
    name: str,
    value: QueryValue,
    *,
    array_format: ArrayFormat = "repeat",
):
    """Middleware factory: add a single default query parameter."""
    return with_query_params({name: value}, array_format=array_format)
