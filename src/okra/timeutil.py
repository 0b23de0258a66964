"""Epoch-millisecond clock helpers and the time references the CLI accepts.

A reference is one of:
- a calendar date or timestamp ("2025-01-15", "2025-01-15T14:30")
- a span back from now ("3 hours ago", "2 weeks ago")
- a named point ("now", "today", "yesterday", "tomorrow", "last week")
- raw epoch milliseconds, as the HTTP routes use them
"""

import re
import time
from datetime import datetime, timezone

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from .constants import (
    MILLIS_PER_SECOND,
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    SECONDS_PER_MONTH,
    SECONDS_PER_WEEK,
    SECONDS_PER_YEAR,
)

_UNITS = "second|minute|hour|day|week|month|year"
_SPAN_AGO = re.compile(rf"(\d+)\s*({_UNITS})s?\s+ago")
_LAST = re.compile(r"last\s+(week|month|year)")
_EPOCH_MILLIS = re.compile(r"\d{10,15}")

# Midnight offsets, in days, for the named calendar days.
_DAYS = {"yesterday": -1, "today": 0, "tomorrow": 1}

# Largest unit first.
_AGE_UNITS = [
    (SECONDS_PER_YEAR, "year"),
    (SECONDS_PER_MONTH, "month"),
    (SECONDS_PER_WEEK, "week"),
    (SECONDS_PER_DAY, "day"),
    (SECONDS_PER_HOUR, "hour"),
    (SECONDS_PER_MINUTE, "minute"),
]


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def to_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * MILLIS_PER_SECOND)


def from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / MILLIS_PER_SECOND, tz=timezone.utc)


def _resolve(ref: str, now: datetime) -> datetime:
    key = ref.lower()
    if key == "now":
        return now
    if key in _DAYS:
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight + relativedelta(days=_DAYS[key])

    last = _LAST.fullmatch(key)
    if last:
        return now - relativedelta(**{f"{last.group(1)}s": 1})

    span = _SPAN_AGO.fullmatch(key)
    if span:
        return now - relativedelta(**{f"{span.group(2)}s": int(span.group(1))})

    if _EPOCH_MILLIS.fullmatch(ref):
        return from_millis(int(ref))

    parsed = dateparser.parse(ref)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_time_reference(ref: str, now_ms: int | None = None) -> int:
    """Resolve a time reference to epoch milliseconds.

    Args:
        ref: Reference text; case and surrounding blanks are ignored
        now_ms: "Now" for relative references (default: the wall clock)

    Raises:
        ValueError: The reference is not understood or out of range.
    """
    now = from_millis(now_millis() if now_ms is None else now_ms)
    try:
        return to_millis(_resolve(ref.strip(), now))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Cannot parse time reference: {ref}") from e


def format_age(millis: int, now_ms: int | None = None) -> str:
    """Describe how long ago `millis` was, e.g. "3 hours ago"."""
    if now_ms is None:
        now_ms = now_millis()
    seconds = (now_ms - millis) // MILLIS_PER_SECOND
    if seconds < 0:
        return "in the future"

    for size, unit in _AGE_UNITS:
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'' if count == 1 else 's'} ago"
    return f"{seconds} seconds ago"
