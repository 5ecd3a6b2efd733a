"""Common time utilities."""

from __future__ import annotations

import datetime as dt
import math

SECONDS_PER_DAY = 86_400


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = "datetime must be timezone aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def unix_seconds(value: dt.datetime) -> int:
    """Return whole seconds since the Unix epoch, rounding towards the past."""
    return math.floor(ensure_utc(value).timestamp())


def from_unix_seconds(seconds: int) -> dt.datetime:
    """Return the aware UTC datetime for ``seconds`` since the epoch."""
    return dt.datetime.fromtimestamp(seconds, tz=dt.UTC)
