"""``Retry-After`` header parsing (RFC 9110 section 10.2.3).

Two forms are accepted:

* ``delay-seconds`` -- one or more ASCII digits, e.g. ``120``;
* ``IMF-fixdate`` -- e.g. ``Sun, 06 Nov 1994 08:49:37 GMT``.

Everything else -- fractions, signs, ISO-8601, the obsolete RFC 850 and
asctime date forms, non-GMT zones -- is invalid and parses to ``None``.  The
retry-after middleware treats ``None`` as "do not retry".

A well-formed ``delay-seconds`` value too large to be represented exactly in
milliseconds parses to :data:`UNREPRESENTABLE` (``math.inf``) instead, so the
retry loop can reject it as an error rather than ignore it.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone

MAX_SAFE_INTEGER: int = 2**53 - 1

UNREPRESENTABLE: float = math.inf
"""Parsed delay for well-formed values above :data:`MAX_SAFE_INTEGER` ms."""

_DELAY_SECONDS = re.compile(r"[0-9]+", re.ASCII)

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_IMF_FIXDATE = re.compile(
    r"(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun), "
    r"(?P<day>[0-9]{2}) "
    r"(?P<month>" + "|".join(_MONTHS) + r") "
    r"(?P<year>[0-9]{4}) "
    r"(?P<hour>[0-9]{2}):(?P<minute>[0-9]{2}):(?P<second>[0-9]{2}) "
    r"GMT",
    re.ASCII,
)


def parse_http_date(value: str) -> datetime | None:
    """Parse an IMF-fixdate into an aware UTC :class:`datetime`.

    Returns ``None`` for any other format and for impossible dates such as
    ``31 Feb``.  The weekday is not cross-checked against the date.
    """
    match = _IMF_FIXDATE.fullmatch(value)
    if match is None:
        return None
    try:
        return datetime(
            int(match["year"]),
            _MONTHS.index(match["month"]) + 1,
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None


def parse_retry_after(
    value: str | None,
    *,
    now: datetime | None = None,
) -> int | float | None:
    """Convert a ``Retry-After`` header value into a delay in milliseconds.

    Parameters
    ----------
    value:
        The raw header value, or ``None`` when the header is absent.
    now:
        Reference instant for the date form.  Defaults to the current UTC
        time.

    Returns
    -------
    int | float | None
        The delay in whole milliseconds (never negative; past dates give
        ``0``), :data:`UNREPRESENTABLE` if a ``delay-seconds`` value is too
        large to be represented exactly, or ``None`` if the value is absent
        or malformed.
    """
    if value is None:
        return None

    if _DELAY_SECONDS.fullmatch(value):
        digits = value.lstrip("0") or "0"
        # Longer than MAX_SAFE_INTEGER // 1000 has digits.
        if len(digits) > 13:
            return UNREPRESENTABLE
        delay = int(digits) * 1000
        return delay if delay <= MAX_SAFE_INTEGER else UNREPRESENTABLE

    instant = parse_http_date(value)
    if instant is None:
        return None

    reference = now if now is not None else datetime.now(timezone.utc)
    delta = instant - reference
    delay = delta.days * 86_400_000 + delta.seconds * 1000 + delta.microseconds // 1000
    return max(0, delay)
