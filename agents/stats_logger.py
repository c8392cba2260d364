#!/usr/bin/env python3
"""Stats logger: journal raw samples now, upload them in batches later.

The logger knows only about sample values, not averages, counters or gauges.
Samples go to a durable journal so they survive a crash; aggregation and
interpretation are left to the backend.
"""

import logging
import os
import socket
import sys
import threading
import tracemalloc
from typing import Any, Dict, List, Mapping, Optional, Union

from agents.upload_orchestrator import CycleResult, UploadFn, UploadOrchestrator
from clients.stackdriver_client import upload_to_stackdriver
from journal.writer import FileJournal, StreamJournal
from utils.instance_id import look_up_instance_id
from utils.journal_encoder import encode_line
from utils.journal_parser import DEFAULT_STALE_AFTER_S, parse_journal_contents
from utils.sample_models import SampleRecord
from utils.timestamps import make_timestamp, normalize_to_unix_seconds

logger = logging.getLogger(__name__)


def short_hostname() -> str:
	hostname = socket.gethostname()
	if hostname.find(".") > 0:
		hostname = hostname[:hostname.find(".")]
	return hostname


def process_memory_usage() -> Dict[str, int]:
	"""Current resident set size and traced Python heap, in bytes.

	Heap figures are only available while ``tracemalloc`` is tracing: ``heap_used``
	is the traced current size, ``heap_total`` the traced peak.
	"""
	usage: Dict[str, int] = {}
	try:
		with open("/proc/self/statm", "r", encoding="ascii") as f:
			usage["rss"] = int(f.read().split()[1]) * os.sysconf("SC_PAGE_SIZE")
	except (OSError, ValueError, IndexError):
		import resource
		maxrss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
		# kilobytes on Linux, bytes on macOS
		usage["rss"] = maxrss if sys.platform == "darwin" else maxrss * 1024
	if tracemalloc.is_tracing():
		current, peak = tracemalloc.get_traced_memory()
		usage["heap_used"] = current
		usage["heap_total"] = peak
	return usage


class StatsLogger:
	"""Writes samples to a journal and uploads the journal in batches."""

	def __init__(
		self,
		journal: Union[None, str, Any] = None,
		prefix: Optional[str] = None,
		hostname: Optional[str] = None,
		instance: Optional[str] = None,
		collect_rejects: bool = False,
	):
		"""Initialize the stats logger.

		Args:
			journal: Journal file path, or any object with ``write(line)``; stdout if None
			prefix: Prepended to every stat name; defaults to ``<hostname>.``
			hostname: Defaults to the short host name
			instance: Instance id attached to uploaded samples
			collect_rejects: Install a fresh list for rejected journal lines
		"""
		self.pid = os.getpid()
		self.hostname = hostname or short_hostname()
		self.prefix = prefix if prefix is not None else self.hostname + "."
		if journal is None:
			self.journal = StreamJournal()
		elif isinstance(journal, (str, os.PathLike)):
			self.journal = FileJournal(os.fspath(journal))
		else:
			self.journal = journal
		self.instance = instance
		self._rejected_lines: Optional[List[str]] = [] if collect_rejects else None
		self._rejects_lock = threading.Lock()
		self.uploader = UploadOrchestrator(self)

	def set_instance_id(self, instance_id: Optional[str]) -> "StatsLogger":
		self.instance = instance_id
		return self

	# -------- rejected lines --------
	@property
	def rejected_lines(self) -> Optional[List[str]]:
		"""The list currently receiving rejected journal lines, or None."""
		return self._rejected_lines

	def swap_rejected_lines(self, save_to: Optional[List[str]]) -> Optional[List[str]]:
		"""Install ``save_to`` as the rejection list and return the previous one intact."""
		with self._rejects_lock:
			previous = self._rejected_lines
			self._rejected_lines = save_to
		return previous

	def drain_rejected_lines(self) -> List[str]:
		"""Return the rejected lines so far and start a fresh list, if one is installed."""
		with self._rejects_lock:
			previous = self._rejected_lines
			if previous is None:
				return []
			self._rejected_lines = []
		return previous

	# -------- journaling --------
	def make_timestamp(self) -> str:
		return make_timestamp()

	def unix_timestamp(self, timestamp: Any = None) -> int:
		return normalize_to_unix_seconds(timestamp)

	def log_stat(self, name: str, value: Any, timestamp: Optional[str] = None) -> None:
		"""Record a stat in the journal for batched upload later."""
		if timestamp is None:
			timestamp = self.make_timestamp()
		self.journal.write(encode_line(name, value, timestamp, prefix=self.prefix))

	def log_memory_usage(self, usage: Optional[Mapping[str, Any]] = None) -> None:
		"""Journal ``mem_rss``, ``mem_heap_total`` and ``mem_heap_used`` with one timestamp."""
		usage = usage if usage is not None else process_memory_usage()
		time_string = self.make_timestamp()
		if usage.get("rss"):
			self.log_stat("mem_rss", usage["rss"], time_string)
		if usage.get("heap_total"):
			self.log_stat("mem_heap_total", usage["heap_total"], time_string)
		if usage.get("heap_used"):
			self.log_stat("mem_heap_used", usage["heap_used"], time_string)

	# -------- upload --------
	def parse_journal(self, contents: str, stale_after_s: int = DEFAULT_STALE_AFTER_S) -> List[SampleRecord]:
		return parse_journal_contents(
			contents,
			instance=self.instance,
			stale_after_s=stale_after_s,
			rejects=self._rejected_lines,
		)

	def upload_to_stackdriver(self, contents: str, config: Any) -> str:
		return upload_to_stackdriver(
			contents, config, instance=self.instance, rejects=self._rejected_lines
		)

	def upload_stats_from_journal(self, journal_path: str, upload_fn: UploadFn) -> CycleResult:
		"""Run one upload cycle; on success the captured journal is removed."""
		return self.uploader.run_cycle(journal_path, upload_fn)

	@staticmethod
	def look_up_instance_id() -> str:
		return look_up_instance_id()
