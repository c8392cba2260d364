#!/usr/bin/env python3
"""Atomic journal handoff to a capture file.

The live journal ``<path>`` is moved to ``<path>.up`` without ever clobbering
an existing capture file. A leftover capture file means an earlier upload did
not finish; it is handed back for upload and the live journal keeps growing
under its own name until the next cycle.
"""

from __future__ import annotations

import errno
import logging
import os
from dataclasses import dataclass

from utils.errors import RotationError

logger = logging.getLogger(__name__)

CAPTURE_SUFFIX = ".up"

# filesystems that cannot hard link report one of these
_NO_LINK_ERRNOS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.EXDEV, errno.EMLINK}


@dataclass
class RotationResult:
    capture_path: str
    reused: bool


def capture_path_for(journal_path: str) -> str:
    return str(journal_path) + CAPTURE_SUFFIX


def _errno_code(err: OSError) -> str:
    return errno.errorcode.get(err.errno or 0, "EIO")


def _rotation_error(journal_path: str, err: OSError) -> RotationError:
    code = _errno_code(err)
    return RotationError(
        f"{code}: cannot rotate journal {journal_path}: {err.strerror or err}",
        code=code,
        cause=err,
    )


def rotate_journal(journal_path: str) -> RotationResult:
    """Hand the journal off to its capture file.

    Returns:
        RotationResult with the capture path; ``reused`` is True when a
        capture file from an earlier cycle was already present

    Raises:
        RotationError: missing journal, directory, permission or I/O failure
    """
    journal_path = str(journal_path)
    capture_path = capture_path_for(journal_path)

    if os.path.lexists(capture_path):
        logger.info(f"Capture file {capture_path} already exists, uploading it first")
        return RotationResult(capture_path, reused=True)

    if os.path.isdir(journal_path):
        raise RotationError(
            f"EISDIR: cannot rotate journal {journal_path}: is a directory", code="EISDIR"
        )

    try:
        # link fails with EEXIST instead of overwriting a concurrent capture
        os.link(journal_path, capture_path)
    except FileExistsError:
        logger.info(f"Capture file {capture_path} appeared concurrently, uploading it")
        return RotationResult(capture_path, reused=True)
    except OSError as e:
        if e.errno not in _NO_LINK_ERRNOS or not os.path.isfile(journal_path):
            raise _rotation_error(journal_path, e) from e
        reused = _rename_without_link(journal_path, capture_path)
        return RotationResult(capture_path, reused=reused)

    try:
        os.unlink(journal_path)
    except OSError as e:
        # both names now point at the same data; the next cycle re-uploads it
        raise _rotation_error(journal_path, e) from e

    logger.debug(f"✓ Rotated {journal_path} -> {capture_path}")
    return RotationResult(capture_path, reused=False)


def _rename_without_link(journal_path: str, capture_path: str) -> bool:
    # not atomic against a concurrent rotation, only used where links are unavailable
    if os.path.lexists(capture_path):
        return True
    try:
        os.rename(journal_path, capture_path)
    except OSError as e:
        raise _rotation_error(journal_path, e) from e
    logger.debug(f"✓ Renamed {journal_path} -> {capture_path}")
    return False
