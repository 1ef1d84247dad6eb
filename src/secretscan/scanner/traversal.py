"""
Working tree traversal for the scanning engine.
"""

import functools
import logging
import threading
from collections.abc import Iterator
from pathlib import Path

from secretscan.core.errors import ScanRootError
from secretscan.core.ignore_matcher import IgnoreMatcher

from .interfaces import ErrorCallback, ScanSourceInterface
from .models import FileError, ScanTarget

logger = logging.getLogger(__name__)


class WorkingTreeSource(ScanSourceInterface):
    """
    Enumerates the files of a directory tree.

    The walk is sequential and visits each directory once, in sorted order,
    so the sequence of targets is deterministic for a given filesystem state.
    Symlinked directories are not followed, which rules out cycles. Symlinked
    files are yielded; a broken link surfaces as a per-file error when opened.
    Special files are skipped whether reached directly or through a link.
    """

    def __init__(self, root: Path, ignore_matcher: IgnoreMatcher | None = None):
        """
        Initialize the source.

        Args:
            root: Directory to scan
            ignore_matcher: Matcher deciding exclusion; None scans everything
        """
        self._root = Path(root)
        self._matcher = ignore_matcher or IgnoreMatcher()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def description(self) -> str:
        return str(self._root)

    def validate(self) -> None:
        if not self._root.exists():
            raise ScanRootError(str(self._root), "path does not exist")
        if not self._root.is_dir():
            raise ScanRootError(str(self._root), "path is not a directory")
        try:
            next(self._root.iterdir(), None)
        except OSError as e:
            raise ScanRootError(str(self._root), f"directory is not readable: {e}") from e

    def iter_targets(
        self,
        on_error: ErrorCallback,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[ScanTarget]:
        yield from self._walk(self._root, "", on_error, cancel_event)

    def _walk(
        self,
        current: Path,
        rel_dir: str,
        on_error: ErrorCallback,
        cancel_event: threading.Event | None,
    ) -> Iterator[ScanTarget]:
        """
        Recursively walk one directory.

        Args:
            current: Directory being walked
            rel_dir: Its path relative to the root ("" for the root)
            on_error: Receives listing failures of subdirectories
            cancel_event: Walk stops when set
        """
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as e:
            if not rel_dir:
                raise ScanRootError(str(current), f"directory is not readable: {e}") from e
            logger.warning(f"Error accessing directory: {current} - {e}")
            on_error(FileError(path=rel_dir, message=f"Cannot list directory: {e}"))
            return

        for entry in entries:
            if cancel_event is not None and cancel_event.is_set():
                return

            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            is_symlink = entry.is_symlink()

            if entry.is_dir():
                if is_symlink:
                    logger.debug(f"Skipping symlinked directory: {entry}")
                    continue
                if self._matcher.is_ignored_dir(rel_path):
                    logger.debug(f"Ignoring directory: {rel_path}")
                    continue
                yield from self._walk(entry, rel_path, on_error, cancel_event)
                continue

            # exists() and is_file() follow links; broken links fall through and
            # surface as per-file errors when opened
            if entry.exists() and not entry.is_file():
                # Sockets, FIFOs and devices, linked or not, would block or never end
                logger.debug(f"Skipping special file: {entry}")
                continue

            if self._matcher.is_ignored(rel_path):
                logger.debug(f"Ignoring: {rel_path}")
                continue

            yield ScanTarget(path=rel_path, opener=functools.partial(open, entry, "rb"))
