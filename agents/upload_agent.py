#!/usr/bin/env python3
"""Stats journal upload agent.

Runs upload cycles for a journal, once or on a fixed interval, and provides a
small CLI for journaling samples and uploading them.
"""

import json
import logging
import os
import sys
import threading
from typing import Any, Callable, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from agents.stats_logger import StatsLogger  # noqa: E402
from agents.upload_orchestrator import CycleResult, UploadFn, UploadOrchestrator  # noqa: E402
from clients.backends import resolve_backend  # noqa: E402
from configs.config import Config  # noqa: E402
from utils.errors import CleanupError, RejectedLinesError, StatsJournalError  # noqa: E402
from utils.instance_id import InstanceLookupError  # noqa: E402

# Set up logging
logger = logging.getLogger(__name__)

ErrorSink = Callable[[BaseException, str], None]


def log_cycle_error(error: BaseException, message: str) -> None:
	"""Default error sink: a missing journal only means nothing was logged yet."""
	if getattr(error, "code", None) == "ENOENT":
		logger.debug(message)
	elif not getattr(error, "fatal", True):
		logger.warning(message)
	else:
		logger.error(message)


class UploadLoopHandle:
	"""Cancels future ticks of a running upload loop."""

	def __init__(self, thread: threading.Thread, stop_event: threading.Event):
		self._thread = thread
		self._stop = stop_event

	def cancel(self) -> None:
		self._stop.set()

	@property
	def cancelled(self) -> bool:
		return self._stop.is_set()

	def is_alive(self) -> bool:
		return self._thread.is_alive()

	def join(self, timeout: Optional[float] = None) -> None:
		self._thread.join(timeout)


class UploadScheduler:
	"""Runs an upload cycle every ``interval_s`` seconds on a daemon thread.

	Cancelling stops future ticks only; a cycle in flight runs to completion.
	"""

	def __init__(
		self,
		journal_path: str,
		upload_fn: UploadFn,
		interval_s: float = 120,
		on_error: Optional[ErrorSink] = None,
		orchestrator: Optional[UploadOrchestrator] = None,
	):
		self.journal_path = str(journal_path)
		self.upload_fn = upload_fn
		self.interval_s = float(interval_s)
		self.on_error = on_error or log_cycle_error
		self.orchestrator = orchestrator or UploadOrchestrator()

	def start(self) -> UploadLoopHandle:
		stop_event = threading.Event()
		thread = threading.Thread(
			target=self._loop,
			args=(stop_event,),
			daemon=True,
			name=f"stats-upload-{os.path.basename(self.journal_path)}",
		)
		thread.start()
		logger.info(f"Upload loop started for {self.journal_path} every {self.interval_s:g}s")
		return UploadLoopHandle(thread, stop_event)

	def _loop(self, stop_event: threading.Event) -> None:
		while not stop_event.wait(self.interval_s):
			self.tick()
		logger.info(f"Upload loop stopped for {self.journal_path}")

	def tick(self) -> Optional[CycleResult]:
		"""Run one cycle, reporting every error instead of raising it."""
		try:
			result = self.orchestrator.run_cycle(self.journal_path, self.upload_fn)
		except CleanupError as e:
			self._report(e, f"stats uploaded but not cleaned up: {e}")
			if e.result is not None:
				self._report_rejects(e.result.rejected)
			return e.result
		except StatsJournalError as e:
			self._report(e, f"stats upload cycle failed [{e.code}]: {e}")
			self._report_rejects(e.rejected)
			return None
		except Exception as e:
			self._report(e, f"unexpected error in stats upload cycle: {e}")
			return None
		self._report_rejects(result.rejected)
		return result

	def _report_rejects(self, rejected: List[str]) -> None:
		if rejected:
			lines = "\n".join(rejected)
			self._report(RejectedLinesError(rejected), f"unable to upload lines:\n{lines}")

	def _report(self, error: BaseException, message: str) -> None:
		try:
			self.on_error(error, message)
		except Exception:
			logger.exception("error sink failed")


def start_upload_loop(
	journal_path: str,
	backend_name: Any,
	backend_config: Any,
	interval_s: float = 120,
	on_error: Optional[ErrorSink] = None,
	stats_logger: Optional[StatsLogger] = None,
) -> UploadLoopHandle:
	"""Start uploading ``journal_path`` to the named backend on a fixed interval.

	Args:
		journal_path: Journal file written by the stats logger
		backend_name: Backend name, e.g. "stackdriver"
		backend_config: Backend config (model or mapping)
		interval_s: Seconds between cycles
		on_error: Called as ``on_error(error, message)`` for every cycle error
		stats_logger: Supplies instance id, rejection list and single-flight guard

	Returns:
		Handle whose ``cancel()`` stops future ticks

	Raises:
		ConfigError: Unknown backend, absent config or missing credentials
	"""
	if stats_logger is None:
		stats_logger = StatsLogger(journal=journal_path, collect_rejects=True)
	elif stats_logger.rejected_lines is None:
		stats_logger.swap_rejected_lines([])
	upload_fn = resolve_backend(backend_name, backend_config, stats_logger)
	orchestrator = stats_logger.uploader
	scheduler = UploadScheduler(
		journal_path, upload_fn, interval_s=interval_s, on_error=on_error, orchestrator=orchestrator
	)
	return scheduler.start()


def _make_stats_logger(args) -> StatsLogger:
	cfg = Config.get_journal_config()
	return StatsLogger(
		journal=args.journal,
		prefix=args.prefix if args.prefix is not None else cfg["prefix"],
		hostname=cfg["hostname"],
		instance=args.instance or cfg["instance"],
		collect_rejects=cfg["collect_rejects"],
	)


def _result_summary(result: CycleResult) -> dict:
	return {
		"status": result.status,
		"capture_path": result.capture_path,
		"reused_capture": result.reused_capture,
		"rejected": len(result.rejected),
	}


def main():
	"""CLI entry point for the stats journal agent."""
	import argparse

	parser = argparse.ArgumentParser(
		description="Stats journal - journal samples and upload them in batches",
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  python -m agents.upload_agent log requests_served 12
  python -m agents.upload_agent upload --journal /var/run/app/stats.journal
  python -m agents.upload_agent loop --interval 60
		"""
	)
	parser.add_argument("--journal", default=Config.STATS_JOURNAL, help="Journal file path")
	parser.add_argument("--prefix", default=None, help="Stat name prefix (default <hostname>.)")
	parser.add_argument("--instance", default=None, help="Instance id attached to samples")
	parser.add_argument("--backend", default=Config.STATS_BACKEND, help="Upload backend name")
	parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
	sub = parser.add_subparsers(dest="command", required=True)

	lg = sub.add_parser("log", help="Append one sample to the journal")
	lg.add_argument("name")
	lg.add_argument("value", type=float)
	lg.add_argument("--timestamp", default=None)

	sub.add_parser("memory", help="Journal this process' memory usage")

	up = sub.add_parser("upload", help="Run one upload cycle")
	up.add_argument("--json", action="store_true", help="Print the cycle result as JSON")

	loop = sub.add_parser("loop", help="Upload on a fixed interval until interrupted")
	loop.add_argument("--interval", type=float, default=Config.UPLOAD_INTERVAL_S, help="Seconds between cycles")

	sub.add_parser("instance-id", help="Print the AWS instance-id of this host")

	args = parser.parse_args()

	# Set up logging
	log_level = logging.DEBUG if args.verbose else logging.INFO
	logging.basicConfig(
		level=log_level,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
	)
	if not args.verbose:
		logging.getLogger("urllib3").setLevel(logging.WARNING)

	try:
		if args.command == "instance-id":
			print(StatsLogger.look_up_instance_id())
			sys.exit(0)

		stats = _make_stats_logger(args)

		if args.command == "log":
			stats.log_stat(args.name, args.value, args.timestamp)
			sys.exit(0)

		if args.command == "memory":
			stats.log_memory_usage()
			sys.exit(0)

		upload_fn = resolve_backend(args.backend, Config.get_stackdriver_config(), stats)

		if args.command == "upload":
			result = stats.upload_stats_from_journal(args.journal, upload_fn)
			if result.rejected:
				print(f"Rejected {len(result.rejected)} line(s)", file=sys.stderr)
			if args.json:
				print(json.dumps(_result_summary(result), indent=2))
			else:
				print(f"Upload {result.status}: {result.capture_path or args.journal}")
			sys.exit(0)

		if args.command == "loop":
			scheduler = UploadScheduler(
				args.journal, upload_fn, interval_s=args.interval, orchestrator=stats.uploader
			)
			handle = scheduler.start()
			try:
				while handle.is_alive():
					handle.join(1.0)
			except KeyboardInterrupt:
				handle.cancel()
				handle.join()
			sys.exit(0)

	except StatsJournalError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(2 if e.code == "CONFIG" else 1)
	except InstanceLookupError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)


if __name__ == "__main__":
	main()
