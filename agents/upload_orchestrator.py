#!/usr/bin/env python3
"""Upload cycle: rotate -> read -> upload -> clean up.

The capture file is deleted only after the upload function returns; on any
failure it stays in place and is uploaded again, unchanged, by the next cycle
(at-least-once delivery). One orchestrator runs at most one cycle at a time.
"""

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from journal.rotator import rotate_journal
from utils.errors import CleanupError, ReadError, RotationError, StatsJournalError, UploadError

logger = logging.getLogger(__name__)

UploadFn = Callable[[str], Any]

STATUS_SKIPPED = "skipped"
STATUS_EMPTY = "empty"
STATUS_UPLOADED = "uploaded"


@dataclass
class CycleResult:
	status: str
	capture_path: Optional[str] = None
	reused_capture: bool = False
	response: Any = None
	rejected: List[str] = field(default_factory=list)


class UploadOrchestrator:
	"""Runs upload cycles for one stats logger, never two at once."""

	def __init__(self, stats_logger: Optional[Any] = None):
		"""Initialize the orchestrator.

		Args:
			stats_logger: Optional logger whose rejected lines are drained after
				each successful upload.
		"""
		self.stats_logger = stats_logger
		self._in_flight = threading.Lock()

	@property
	def in_flight(self) -> bool:
		return self._in_flight.locked()

	def run_cycle(self, journal_path: str, upload_fn: UploadFn) -> CycleResult:
		"""Upload the journal contents once.

		Args:
			journal_path: Live journal file; its capture file is ``<journal_path>.up``
			upload_fn: Called with the captured contents; raises on failure

		Returns:
			CycleResult; status "skipped" when a cycle is already in flight

		Raises:
			RotationError, ReadError, UploadError: cycle aborted, capture file kept
			CleanupError: upload succeeded but the capture file could not be removed
		"""
		if not self._in_flight.acquire(blocking=False):
			logger.debug(f"Upload already in flight, skipping cycle for {journal_path}")
			return CycleResult(status=STATUS_SKIPPED)
		try:
			return self._run(str(journal_path), upload_fn)
		finally:
			self._in_flight.release()

	def _run(self, journal_path: str, upload_fn: UploadFn) -> CycleResult:
		try:
			rotation = rotate_journal(journal_path)
		except RotationError as e:
			if e.code == "ENOENT":
				logger.debug(f"No journal to upload at {journal_path}")
			else:
				logger.error(f"error rotating journal file {journal_path}: {e}")
			raise e.annotate(f"rotate {journal_path}")
		capture_path = rotation.capture_path

		contents = self._read(capture_path)
		if not contents:
			result = CycleResult(STATUS_EMPTY, capture_path, rotation.reused)
			self._remove(capture_path, result)
			return result

		try:
			response = upload_fn(contents)
		except StatsJournalError as e:
			logger.error(f"error uploading stats from {capture_path}: {e}")
			# the capture is parsed again next cycle, so its rejects are reported now
			e.rejected = self._drain_rejects()
			raise e.annotate(f"upload {capture_path}")
		except Exception as e:
			logger.error(f"error uploading stats from {capture_path}: {e}")
			error = UploadError(
				f"upload failed: {e}", payload=str(e), debug=f"upload {capture_path}", cause=e
			)
			error.rejected = self._drain_rejects()
			raise error from e

		result = CycleResult(
			STATUS_UPLOADED,
			capture_path,
			rotation.reused,
			response=response,
			rejected=self._drain_rejects(),
		)
		# remove only after a successful upload, else try again next time
		self._remove(capture_path, result)
		logger.info(f"✓ Uploaded stats journal {capture_path}")
		return result

	def _read(self, capture_path: str) -> str:
		try:
			with open(capture_path, "r", encoding="utf-8", errors="replace") as f:
				return f.read()
		except OSError as e:
			logger.error(f"error reading stats logfile {capture_path}: {e}")
			raise ReadError(
				f"cannot read capture file {capture_path}: {e}",
				code="READ",
				debug=f"read {capture_path}",
				cause=e,
			) from e

	def _remove(self, capture_path: str, result: CycleResult) -> None:
		try:
			os.unlink(capture_path)
		except OSError as e:
			logger.warning(f"unable to remove {capture_path}: {e}")
			raise CleanupError(
				f"cannot remove capture file {capture_path}: {e}",
				result=result,
				debug=f"remove {capture_path}",
				cause=e,
			) from e

	def _drain_rejects(self) -> List[str]:
		if self.stats_logger is None:
			return []
		rejected = self.stats_logger.drain_rejected_lines()
		if rejected:
			logger.warning("unable to upload lines:\n" + "\n".join(rejected))
		return rejected
