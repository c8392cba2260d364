#!/usr/bin/env python3
"""Timestamp helpers for journal lines.

Journal timestamps are free text: whatever the writer put in the first field.
``normalize_to_unix_seconds`` turns any of the accepted forms into integer
seconds since the epoch.

Compatibility quirk: an all-digit string is read as unix seconds only when it
is exactly 10 digits long; any other length is read as milliseconds. A
10-digit millisecond value (before 1970-04-26) is therefore misread. Existing
journals depend on this rule, so it is kept as is.
"""

from __future__ import annotations

import math
import re
import sys
import time
from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser

# smallest representable integer; always older than any staleness cutoff
INVALID_EPOCH = -sys.maxsize - 1

_DIGITS = re.compile(r"[0-9]+")

# abbreviations dateutil does not resolve on its own
_TZINFOS = {
    "UTC": 0,
    "GMT": 0,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}

# year, month and day all differ, so any defaulted date field shows up
_DEFAULT_A = datetime(1970, 1, 1)
_DEFAULT_B = datetime(1971, 2, 2)


def make_timestamp(now: Optional[datetime] = None) -> str:
    """Human-readable UTC timestamp, e.g. ``2015-01-01T12:34:56.789Z``."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.astimezone()
    text = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _datetime_seconds(value: datetime) -> int:
    # naive datetimes are local time
    return math.floor(value.timestamp())


def _parse_full_date(text: str) -> datetime:
    # dateutil fills missing fields from today; a string without a full date is invalid
    first = date_parser.parse(text, default=_DEFAULT_A, tzinfos=_TZINFOS)
    second = date_parser.parse(text, default=_DEFAULT_B, tzinfos=_TZINFOS)
    if first.date() != second.date():
        raise ValueError(f"incomplete date: {text!r}")
    return first


def normalize_to_unix_seconds(stamp: Any = None) -> int:
    """Convert a journal timestamp into integer seconds since the epoch.

    Args:
        stamp: milliseconds as a number, a digit string, a date/time string,
            a ``datetime``/``date``, or None for "now"

    Returns:
        Seconds since the epoch, or ``INVALID_EPOCH`` if unparseable
    """
    if stamp is None or (isinstance(stamp, str) and stamp == ""):
        return int(time.time())

    if isinstance(stamp, (int, float)) and not isinstance(stamp, bool):
        if isinstance(stamp, float) and not math.isfinite(stamp):
            return INVALID_EPOCH
        return int(stamp // 1000)

    if isinstance(stamp, str) and _DIGITS.fullmatch(stamp):
        if len(stamp) == 10:
            return int(stamp)
        return int(stamp) // 1000

    try:
        if isinstance(stamp, datetime):
            return _datetime_seconds(stamp)
        if isinstance(stamp, date):
            return _datetime_seconds(datetime(stamp.year, stamp.month, stamp.day))
        return _datetime_seconds(_parse_full_date(str(stamp)))
    except (ValueError, OverflowError, OSError):
        return INVALID_EPOCH
