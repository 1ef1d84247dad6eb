"""
Scanning engine for secretscan.

Coordinates the scan workflow: a single-threaded traversal produces scan
targets into a bounded work queue, a fixed pool of worker threads streams
each target line by line through the compiled rules, and a MatchAggregator
collects the findings behind a join barrier.

The pool size bounds the number of concurrently open files regardless of the
size of the tree.
"""

import logging
import os
import queue
import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Optional

from secretscan.core.ignore_matcher import IgnoreMatcher, IgnoreSpec
from secretscan.core.rules import Rule

from .aggregator import MatchAggregator, WaitGroup
from .interfaces import ScanSourceInterface
from .line_scanner import decode_line, scan_lines
from .models import FileError, ScanResult, ScanTarget
from .traversal import WorkingTreeSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[int], str], None]

# Number of leading bytes inspected by the optional binary-file skip
BINARY_SNIFF_BYTES = 8192

_STOP = object()


def default_worker_count() -> int:
    """Default pool size, proportional to available parallelism."""
    return min(32, (os.cpu_count() or 1) + 4)


class ScanEngine:
    """
    Bounded worker pool scanning targets produced by a traversal source.

    Cancellation is cooperative: the traversal checks the cancel event per
    entry and workers check it per file and per line. Matches found before
    cancellation are kept.
    """

    def __init__(
        self,
        worker_count: int | None = None,
        queue_size: int | None = None,
        skip_binary: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the engine.

        Args:
            worker_count: Number of worker threads (default: cpu count + 4, max 32)
            queue_size: Capacity of the work queue (default: 4 per worker)
            skip_binary: Skip files with a NUL byte in their first 8 KiB
            progress_callback: Optional callback(current, total, message); total
                               is None because the tree is walked only once
        """
        self._worker_count = worker_count if worker_count is not None else default_worker_count()
        if self._worker_count < 1:
            raise ValueError("worker_count must be at least 1")

        self._queue_size = queue_size if queue_size is not None else self._worker_count * 4
        if self._queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self._skip_binary = skip_binary
        self._progress_callback = progress_callback

    @property
    def worker_count(self) -> int:
        return self._worker_count

    def _report_progress(self, current: int, total: int | None, message: str) -> None:
        """Report progress if callback is set."""
        if self._progress_callback:
            self._progress_callback(current, total, message)

    def scan(
        self,
        source: ScanSourceInterface,
        rules: Sequence[Rule],
        cancel_event: threading.Event | None = None,
    ) -> ScanResult:
        """
        Scan every target of a source.

        Args:
            source: Traversal source producing scan targets
            rules: Compiled rules, shared read-only by all workers
            cancel_event: Set to stop the scan early

        Returns:
            Finalized ScanResult

        Raises:
            ScanRootError: If the source cannot be traversed
        """
        source.validate()

        rules = tuple(rules)
        if cancel_event is None:
            cancel_event = threading.Event()

        start_time = time.time()
        logger.debug(
            f"Scanning {source.description} with {self._worker_count} workers "
            f"and {len(rules)} rules"
        )

        aggregator = MatchAggregator()
        aggregator.start()

        work_queue: queue.Queue = queue.Queue(maxsize=self._queue_size)
        wait_group = WaitGroup()
        workers = [
            threading.Thread(
                target=self._worker_loop,
                args=(work_queue, wait_group, aggregator, rules, cancel_event),
                name=f"secretscan-worker-{i}",
                daemon=True,
            )
            for i in range(self._worker_count)
        ]
        for worker in workers:
            worker.start()

        dispatched = 0
        try:
            for target in source.iter_targets(aggregator.publish_error, cancel_event):
                # Counted before the put so a fast worker can never drive it negative
                wait_group.add()
                try:
                    work_queue.put(target)
                except BaseException:
                    wait_group.done()
                    raise
                dispatched += 1
                self._report_progress(dispatched, None, f"Scanning {target.path}")
        except KeyboardInterrupt:
            logger.warning("Scan interrupted, returning partial results")
            cancel_event.set()
        finally:
            for _ in workers:
                work_queue.put(_STOP)
            # Join barrier: the result channel may only close after all work is done
            self._wait_for_workers(wait_group, cancel_event)
            for worker in workers:
                worker.join()
            aggregator.close()

        result = aggregator.finalize(
            duration_seconds=time.time() - start_time,
            cancelled=cancel_event.is_set(),
        )

        logger.info(
            "Scan completed",
            extra={
                "files_dispatched": dispatched,
                "files_scanned": result.files_scanned,
                "match_count": len(result.matches),
                "error_count": result.error_count,
                "duration_seconds": result.duration_seconds,
                "cancelled": result.cancelled,
            },
        )
        return result

    @staticmethod
    def _wait_for_workers(wait_group: WaitGroup, cancel_event: threading.Event) -> None:
        """Block on the join barrier; an interrupt cancels the scan and waits again."""
        while True:
            try:
                wait_group.wait()
                return
            except KeyboardInterrupt:
                logger.warning("Scan interrupted, waiting for workers to stop")
                cancel_event.set()

    def _worker_loop(
        self,
        work_queue: queue.Queue,
        wait_group: WaitGroup,
        aggregator: MatchAggregator,
        rules: tuple[Rule, ...],
        cancel_event: threading.Event,
    ) -> None:
        while True:
            target = work_queue.get()
            if target is _STOP:
                return
            try:
                # Queued work is drained without scanning once cancelled
                if not cancel_event.is_set():
                    self._scan_target(target, aggregator, rules, cancel_event)
            finally:
                wait_group.done()

    def _scan_target(
        self,
        target: ScanTarget,
        aggregator: MatchAggregator,
        rules: tuple[Rule, ...],
        cancel_event: threading.Event,
    ) -> None:
        """Stream one target through the line scanner and publish its matches."""
        try:
            with target.open() as stream:
                if self._skip_binary and self._looks_binary(stream):
                    logger.debug(f"Skipping binary file: {target.path}")
                    return

                lines = (decode_line(raw) for raw in stream)
                for match in scan_lines(
                    lines, target.path, rules, target.commit_ref, cancel_event
                ):
                    aggregator.publish_match(match)
        except OSError as e:
            logger.warning(f"Error reading file: {target.path} - {e}")
            aggregator.publish_error(FileError(target.path, str(e), target.commit_ref))
            return
        except Exception as e:
            logger.error(f"Failed to scan {target.path}: {e}")
            aggregator.publish_error(FileError(target.path, str(e), target.commit_ref))
            return

        aggregator.publish_file_done(target.path)

    @staticmethod
    def _looks_binary(stream) -> bool:
        """Check for a NUL byte in the leading bytes without consuming them."""
        peek = getattr(stream, "peek", None)
        if peek is None:
            return False
        return b"\x00" in peek(BINARY_SNIFF_BYTES)[:BINARY_SNIFF_BYTES]


def scan(
    root: Path | str,
    rules: Sequence[Rule],
    ignore: IgnoreSpec | None = None,
    worker_count: int | None = None,
    cancel_event: threading.Event | None = None,
) -> ScanResult:
    """
    Scan a directory tree with compiled rules.

    Args:
        root: Directory to scan
        rules: Compiled rules
        ignore: Ignore rules for the root
        worker_count: Size of the worker pool (default: proportional to CPUs)
        cancel_event: Set to stop the scan early

    Returns:
        ScanResult for the tree

    Raises:
        ScanRootError: If the root is missing or unreadable
    """
    source = WorkingTreeSource(Path(root), IgnoreMatcher(ignore))
    engine = ScanEngine(worker_count=worker_count)
    return engine.scan(source, rules, cancel_event=cancel_event)
