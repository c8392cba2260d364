#!/usr/bin/env python3
"""Typed errors for the journal upload cycle.

Every step-level failure carries a short ``code`` for programmatic handling, a
``debug`` annotation naming the step that failed, and the underlying ``cause``.
"""

from __future__ import annotations

from typing import Any, List, Optional


class StatsJournalError(Exception):
    """Base class; ``fatal`` errors abort the current upload cycle."""

    fatal = True

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN",
        *,
        debug: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.debug = debug
        self.cause = cause
        # journal lines rejected by the cycle that raised this error
        self.rejected: List[str] = []

    def annotate(self, debug: str) -> "StatsJournalError":
        """Attach the operator-facing step annotation, keeping any earlier one."""
        if not self.debug:
            self.debug = debug
        return self

    def __str__(self) -> str:
        base = super().__str__()
        if self.debug:
            return f"{base} ({self.debug})"
        return base


class ConfigError(StatsJournalError):
    """Missing credential or unknown backend. Never retried automatically."""


class RotationError(StatsJournalError):
    """Journal could not be handed off to the capture file."""


class ReadError(StatsJournalError):
    """Capture file exists but could not be read."""


class UploadError(StatsJournalError):
    """Network failure or non-2xx response; ``payload`` holds the diagnostic body."""

    def __init__(self, message: str, code: str = "UPLOAD", *, payload: Any = None, **kw) -> None:
        super().__init__(message, code, **kw)
        self.payload = payload


class CleanupError(StatsJournalError):
    """Capture file could not be removed after a successful upload."""

    fatal = False

    def __init__(self, message: str, code: str = "CLEANUP", *, result: Any = None, **kw) -> None:
        super().__init__(message, code, **kw)
        self.result = result


class RejectedLinesError(StatsJournalError):
    """Journal lines that failed validation, reported for diagnostics only."""

    fatal = False

    def __init__(self, lines: List[str], **kw) -> None:
        super().__init__(f"{len(lines)} journal line(s) rejected", "REJECTED", **kw)
        self.lines = list(lines)
