"""
Abstract interfaces for scan traversal sources.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator

from .models import FileError, ScanTarget

ErrorCallback = Callable[[FileError], None]


class ScanSourceInterface(ABC):
    """
    Abstract interface for producers of scan targets.

    A source enumerates the content to scan (a working tree, a commit history)
    and applies ignore rules. The engine consumes the targets with a bounded
    worker pool.
    """

    @abstractmethod
    def validate(self) -> None:
        """
        Check that the source can be traversed at all.

        Called before any work is dispatched.

        Raises:
            ScanRootError: If the root is missing or unreadable
        """
        pass

    @abstractmethod
    def iter_targets(
        self,
        on_error: ErrorCallback,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[ScanTarget]:
        """
        Traverse the source once and yield eligible scan targets.

        Args:
            on_error: Called with a FileError for each recoverable traversal failure
            cancel_event: Traversal stops when this event is set

        Yields:
            ScanTarget objects that passed the ignore rules
        """
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Short human-readable description of what is being scanned."""
        pass
