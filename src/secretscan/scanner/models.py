"""
Data models for the scanner module.
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import BinaryIO


@dataclass(frozen=True)
class ScanTarget:
    """
    A resolved, ignore-checked unit of work.

    Attributes:
        path: Path relative to the scan root, with forward slashes
        opener: Callable returning a context manager over a binary stream
        commit_ref: Commit the content was taken from (history scans only)
    """

    path: str
    opener: Callable[[], AbstractContextManager[BinaryIO]] = field(repr=False, compare=False)
    commit_ref: str | None = None

    def open(self) -> AbstractContextManager[BinaryIO]:
        """Open the target's content for streaming."""
        return self.opener()


@dataclass(frozen=True)
class Match:
    """
    One rule-to-line hit with full location context.

    Attributes:
        rule_id: Id of the rule that fired
        path: Path relative to the scan root
        line_number: 1-based line number
        line_text: Raw line text without the line terminator
        commit_ref: Commit containing the line (history scans only)
        secret: Text of the rule's secret group
    """

    rule_id: str
    path: str
    line_number: int
    line_text: str
    commit_ref: str | None = None
    secret: str = ""

    @property
    def display_text(self) -> str:
        """Line text safe to print or encode, with undecodable bytes escaped."""
        return self.line_text.encode("utf-8", "backslashreplace").decode("utf-8")

    def to_dict(self) -> dict:
        """Serializable representation used by reports."""
        return {
            "rule_id": self.rule_id,
            "path": self.path,
            "line_number": self.line_number,
            "line_text": self.line_text,
            "commit_ref": self.commit_ref,
            "secret": self.secret,
        }


@dataclass(frozen=True)
class FileError:
    """A recoverable per-file failure recorded during a scan."""

    path: str
    message: str
    commit_ref: str | None = None

    def to_dict(self) -> dict:
        return {"path": self.path, "message": self.message, "commit_ref": self.commit_ref}


@dataclass(frozen=True)
class ScanResult:
    """
    Finalized result of one scan invocation.

    Attributes:
        matches: All matches found, in aggregation order
        files_scanned: Number of files fully or partially scanned without error
        duration_seconds: Wall-clock duration of the scan
        errors: Recoverable per-file errors
        cancelled: True if the scan was stopped before the traversal finished
    """

    matches: tuple[Match, ...] = ()
    files_scanned: int = 0
    duration_seconds: float = 0.0
    errors: tuple[FileError, ...] = ()
    cancelled: bool = False

    @property
    def has_matches(self) -> bool:
        return bool(self.matches)

    @property
    def error_count(self) -> int:
        return len(self.errors)
