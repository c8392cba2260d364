#!/usr/bin/env python3
"""Encode samples as journal lines: ``<timestamp> <prefix><name> <value>\\n``."""

from __future__ import annotations

import math
from typing import Any, Optional

from utils.timestamps import make_timestamp


def format_value(value: Any) -> str:
    # integral floats are written without the trailing ".0"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def encode_line(name: str, value: Any, timestamp: Optional[str] = None, prefix: str = "") -> str:
    """Build one journal line. Content is not validated here."""
    if timestamp is None:
        timestamp = make_timestamp()
    return f"{timestamp} {prefix}{name} {format_value(value)}\n"
