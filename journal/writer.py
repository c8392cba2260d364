#!/usr/bin/env python3
"""Append-only journal sinks.

``FileJournal`` reopens the file for every line so a rotation (rename of the
journal to its capture name) is picked up on the next write.
"""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import Optional, TextIO


class FileJournal:
    """Durable line sink: append, flush and fsync each line."""

    def __init__(self, path: str, fsync: bool = True) -> None:
        self.path = str(path)
        self.fsync = fsync
        self._lock = threading.Lock()

    def write(self, line: str) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
                if self.fsync:
                    os.fsync(f.fileno())

    def __repr__(self) -> str:
        return f"FileJournal({self.path!r})"


class StreamJournal:
    """Line sink over an open text stream; stdout by default."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream

    def write(self, line: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(line)
        stream.flush()
