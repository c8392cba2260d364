#!/usr/bin/env python3
"""Parse captured journal contents into validated sample records.

Lines that are malformed (not exactly three space-separated fields, or a value
that is not a finite number) or stale are diverted verbatim into the caller's
rejection list, in input order. Without a rejection list they are dropped.
"""

from __future__ import annotations

import logging
import math
import re
import time
from typing import List, Optional

from pydantic import ValidationError

from utils.sample_models import SampleRecord
from utils.timestamps import normalize_to_unix_seconds

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER_S = 7200
# gateway refuses samples collected more than two hours ago; keep a little margin
STALE_SLACK_S = 2

# leading numeric prefix, the way JavaScript parseFloat reads it
_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))")


def parse_leading_float(text: str) -> float:
    """Return the leading number of ``text``, NaN when there is none."""
    match = _LEADING_FLOAT.match(text)
    if not match:
        return math.nan
    return float(match.group(1).replace("Infinity", "inf"))


def stale_cutoff(stale_after_s: int = DEFAULT_STALE_AFTER_S, now: Optional[float] = None) -> int:
    """Samples must be strictly newer than this many seconds since the epoch."""
    now_s = time.time() if now is None else now
    return int(now_s - stale_after_s - STALE_SLACK_S)


def parse_journal_contents(
    contents: str,
    instance: Optional[str] = None,
    stale_after_s: int = DEFAULT_STALE_AFTER_S,
    rejects: Optional[List[str]] = None,
    now: Optional[float] = None,
) -> List[SampleRecord]:
    """Turn raw journal text into sample records.

    Args:
        contents: journal text, newline-separated lines
        instance: instance id attached to every record
        stale_after_s: samples older than this (plus slack) are rejected
        rejects: list that receives rejected lines; None drops them
        now: override of the current time, in seconds

    Returns:
        Valid records in journal order
    """
    cutoff = stale_cutoff(stale_after_s, now)
    records: List[SampleRecord] = []
    n_rejected = 0

    for line in contents.split("\n"):
        if not line:
            continue
        record = _parse_line(line, cutoff, instance)
        if record is None:
            n_rejected += 1
            if rejects is not None:
                rejects.append(line)
            continue
        records.append(record)

    if n_rejected:
        logger.debug(f"Rejected {n_rejected} journal line(s), kept {len(records)}")
    return records


def _parse_line(line: str, cutoff: int, instance: Optional[str]) -> Optional[SampleRecord]:
    fields = line.split(" ")
    if len(fields) != 3:
        return None
    stamp, name, raw_value = fields
    if not stamp or not name or not raw_value:
        return None

    collected_at = normalize_to_unix_seconds(stamp)
    if collected_at <= cutoff:
        return None

    # finiteness is checked before the zero fallback so NaN is never masked
    parsed = parse_leading_float(raw_value)
    if not math.isfinite(parsed):
        return None

    try:
        return SampleRecord(
            name=name,
            value=parsed or 0.0,
            collected_at=collected_at,
            instance=instance,
        )
    except ValidationError:
        # tab or other non-space whitespace inside the name
        return None
