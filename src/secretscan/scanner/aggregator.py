"""
Match aggregation for concurrent scans.

Workers publish matches, per-file errors and completion notices into a
bounded channel. A single consumer thread drains the channel, so the
collected lists are only ever touched by one thread until the scan is
finalized. The channel may only be closed once every dispatched unit of work
has completed (see WaitGroup); closing earlier would truncate results.
"""

import logging
import queue
import threading
from dataclasses import dataclass

from .models import FileError, Match, ScanResult

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_SIZE = 1024


class WaitGroup:
    """
    Counting join barrier.

    ``add`` is called before a unit of work is dispatched and ``done`` when it
    completes; ``wait`` blocks until the count returns to zero.
    """

    def __init__(self) -> None:
        self._count = 0
        self._condition = threading.Condition()

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    def add(self, delta: int = 1) -> None:
        """
        Adjust the outstanding work count.

        Raises:
            ValueError: If the count would become negative
        """
        with self._condition:
            if self._count + delta < 0:
                raise ValueError("WaitGroup counter cannot go negative")
            self._count += delta
            if self._count == 0:
                self._condition.notify_all()

    def done(self) -> None:
        """Mark one unit of work as completed."""
        self.add(-1)

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until all outstanding work has completed.

        Returns:
            True if the counter reached zero, False on timeout
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout)


@dataclass(frozen=True)
class _FileCompleted:
    path: str


_CLOSE = object()


class MatchAggregator:
    """
    Collects results from all scan workers into one ScanResult.

    Usage:
        aggregator.start()
        ... workers call publish_match / publish_error / publish_file_done ...
        wait_group.wait()
        aggregator.close()
        result = aggregator.finalize(duration_seconds)
    """

    def __init__(self, channel_size: int = DEFAULT_CHANNEL_SIZE):
        """
        Initialize the aggregator.

        Args:
            channel_size: Capacity of the result channel; publishers block when it is full
        """
        if channel_size < 1:
            raise ValueError("channel_size must be at least 1")

        self._channel: queue.Queue = queue.Queue(maxsize=channel_size)
        self._matches: list[Match] = []
        self._errors: list[FileError] = []
        self._files_scanned = 0
        self._thread: threading.Thread | None = None
        self._close_requested = False
        self._closed = False

    def start(self) -> None:
        """Start the consumer thread."""
        if self._thread is not None:
            raise RuntimeError("MatchAggregator already started")
        self._thread = threading.Thread(
            target=self._drain, name="secretscan-aggregator", daemon=True
        )
        self._thread.start()

    def _publish(self, item: object) -> None:
        if self._close_requested:
            raise RuntimeError("Cannot publish to a closed MatchAggregator")
        self._channel.put(item)

    def publish_match(self, match: Match) -> None:
        self._publish(match)

    def publish_error(self, error: FileError) -> None:
        self._publish(error)

    def publish_file_done(self, path: str) -> None:
        """Record that one file was scanned without error."""
        self._publish(_FileCompleted(path))

    def _drain(self) -> None:
        while True:
            item = self._channel.get()
            if item is _CLOSE:
                break
            if isinstance(item, Match):
                self._matches.append(item)
            elif isinstance(item, FileError):
                self._errors.append(item)
            elif isinstance(item, _FileCompleted):
                self._files_scanned += 1
            else:
                logger.error(f"Unexpected item on result channel: {item!r}")

    def close(self) -> None:
        """
        Close the channel and wait for the consumer to drain it.

        Must only be called after every publisher has finished.
        """
        if self._closed:
            return
        self._close_requested = True
        self._channel.put(_CLOSE)
        if self._thread is None:
            self._drain()
        else:
            self._thread.join()
        self._closed = True

    def finalize(self, duration_seconds: float = 0.0, cancelled: bool = False) -> ScanResult:
        """
        Build the immutable ScanResult.

        Raises:
            RuntimeError: If called before close()
        """
        if not self._closed:
            raise RuntimeError("MatchAggregator must be closed before finalize()")

        return ScanResult(
            matches=tuple(self._matches),
            files_scanned=self._files_scanned,
            duration_seconds=duration_seconds,
            errors=tuple(self._errors),
            cancelled=cancelled,
        )
