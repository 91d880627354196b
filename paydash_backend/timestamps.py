"""
Timestamp normalization.

Report exports mix ISO timestamps, "YYYY-MM-DD HH:MM:SS" strings, bare dates
and values with stray characters. Everything is reduced to a calendar day
(YYYY-MM-DD) after applying the selected timezone as a flat hour offset.
"""
from __future__ import annotations

import re
from typing import Any, Optional

import pandas as pd

from .models import Timezone, coerce_timezone

__all__ = [
    "normalize",
    "parse_timestamp",
    "format_date",
    "format_datetime",
    "coerce_timezone",
]


_NON_DATE_CHARS = re.compile(r"[^\d\-\s:]")

# A candidate needs a year-like run or a d/m/y group, otherwise the parser
# would fill the missing parts from today's date.
_HAS_DATE = re.compile(r"\d{4}|\d{1,2}[/.\-]\d{1,2}[/.\-]\d{1,4}")


def _try_parse(candidate: str) -> Optional[pd.Timestamp]:
    candidate = candidate.strip()
    if not candidate or not _HAS_DATE.search(candidate):
        return None
    try:
        ts = pd.to_datetime(candidate, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts


def parse_timestamp(raw: Any) -> Optional[pd.Timestamp]:
    """
    Parse a loosely formatted timestamp into a UTC Timestamp.

    Tries the value as-is, then with everything but digits, hyphens,
    whitespace and colons removed, then only the part before the first
    space. Naive values are read as UTC. Returns None when all fail.
    """
    if raw is None:
        return None
    if isinstance(raw, float) and pd.isna(raw):
        return None
    text = str(raw)
    if not text.strip():
        return None

    for candidate in (text, _NON_DATE_CHARS.sub("", text), text.split(" ")[0]):
        ts = _try_parse(candidate)
        if ts is not None:
            return ts
    return None


def format_date(ts: pd.Timestamp) -> str:
    return ts.strftime("%Y-%m-%d")


def format_datetime(ts: pd.Timestamp) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S")


def normalize(raw_timestamp: Any, timezone: Any = Timezone.GMT_0) -> Optional[str]:
    """Return the calendar day of a raw timestamp in the given timezone, or None."""
    ts = parse_timestamp(raw_timestamp)
    if ts is None:
        return None
    tz = coerce_timezone(timezone)
    return format_date(ts.tz_convert(tz.tzinfo))
