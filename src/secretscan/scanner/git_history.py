"""
Commit history traversal for the scanning engine.

Drives the ``git`` executable to enumerate every blob reachable from a ref,
newest commit first. Each distinct (path, blob) pair is scanned once and
attributed to the newest commit that contains it.
"""

import functools
import logging
import subprocess
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from secretscan.core.errors import ScanRootError
from secretscan.core.ignore_matcher import IgnoreMatcher

from .interfaces import ErrorCallback, ScanSourceInterface
from .models import FileError, ScanTarget

logger = logging.getLogger(__name__)

_GIT_TIMEOUT_SECONDS = 60

# Tree entry modes that do not hold scannable file content
_SKIPPED_MODES = frozenset({"120000", "160000"})


@contextmanager
def _open_blob(repo_path: Path, blob_sha: str) -> Iterator[BinaryIO]:
    """Stream a blob's content from ``git cat-file``."""
    proc = subprocess.Popen(
        ["git", "-C", str(repo_path), "cat-file", "blob", blob_sha],
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
    )
    try:
        yield proc.stdout
    finally:
        proc.stdout.close()
        try:
            proc.wait(timeout=_GIT_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

    # A negative code means git was stopped by a signal after we closed the pipe early
    if proc.returncode > 0:
        raise OSError(f"git cat-file exited with status {proc.returncode} for blob {blob_sha}")


class GitHistorySource(ScanSourceInterface):
    """
    Enumerates file contents across the commits of a repository.
    """

    def __init__(
        self,
        repo_path: Path,
        ignore_matcher: IgnoreMatcher | None = None,
        max_commits: int | None = None,
        ref: str = "HEAD",
    ):
        """
        Initialize the source.

        Args:
            repo_path: Path to the repository working tree
            ignore_matcher: Matcher deciding exclusion of repository paths
            max_commits: Only walk this many commits from ``ref`` (None = all)
            ref: Revision to start the walk from
        """
        if max_commits is not None and max_commits < 1:
            raise ValueError("max_commits must be at least 1")

        self._repo_path = Path(repo_path)
        self._matcher = ignore_matcher or IgnoreMatcher()
        self._max_commits = max_commits
        self._ref = ref

    @property
    def description(self) -> str:
        return f"{self._repo_path} ({self._ref} history)"

    def _git(self, *args: str) -> str:
        """Run a git command in the repository and return its stdout."""
        completed = subprocess.run(
            ["git", "-C", str(self._repo_path), *args],
            capture_output=True,
            text=True,
            errors="surrogateescape",
            timeout=_GIT_TIMEOUT_SECONDS,
            check=True,
        )
        return completed.stdout

    def validate(self) -> None:
        if not self._repo_path.is_dir():
            raise ScanRootError(str(self._repo_path), "path is not a directory")
        try:
            self._git("rev-parse", "--verify", "--quiet", f"{self._ref}^{{commit}}")
        except FileNotFoundError as e:
            raise ScanRootError(str(self._repo_path), "git executable not found") from e
        except subprocess.CalledProcessError as e:
            raise ScanRootError(
                str(self._repo_path),
                f"not a git repository or unknown revision '{self._ref}'",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ScanRootError(str(self._repo_path), "git did not respond") from e

    def list_commits(self) -> list[str]:
        """Return commit hashes reachable from the ref, newest first."""
        args = ["rev-list"]
        if self._max_commits is not None:
            args.append(f"--max-count={self._max_commits}")
        args.append(self._ref)
        try:
            output = self._git(*args)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            raise ScanRootError(str(self._repo_path), f"cannot list commits: {e}") from e
        return [line for line in output.splitlines() if line]

    def _list_blobs(self, commit: str) -> list[tuple[str, str]]:
        """Return (path, blob_sha) pairs of a commit's tree."""
        output = self._git("ls-tree", "-r", "-z", "--full-tree", commit)
        blobs: list[tuple[str, str]] = []
        for entry in output.split("\0"):
            if not entry:
                continue
            meta, _, path = entry.partition("\t")
            parts = meta.split()
            if len(parts) != 3:
                continue
            mode, object_type, sha = parts
            if object_type != "blob" or mode in _SKIPPED_MODES:
                continue
            blobs.append((path, sha))
        return blobs

    def iter_targets(
        self,
        on_error: ErrorCallback,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[ScanTarget]:
        commits = self.list_commits()
        logger.debug(f"Walking {len(commits)} commits of {self._repo_path}")

        seen: set[tuple[str, str]] = set()
        for commit in commits:
            if cancel_event is not None and cancel_event.is_set():
                return

            try:
                blobs = self._list_blobs(commit)
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
                logger.warning(f"Error listing tree of commit {commit}: {e}")
                on_error(FileError(path="", message=f"Cannot list tree: {e}", commit_ref=commit))
                continue

            for path, blob_sha in blobs:
                if cancel_event is not None and cancel_event.is_set():
                    return
                if (path, blob_sha) in seen:
                    continue
                seen.add((path, blob_sha))

                if self._matcher.is_ignored(path):
                    logger.debug(f"Ignoring: {path}")
                    continue

                yield ScanTarget(
                    path=path,
                    opener=functools.partial(_open_blob, self._repo_path, blob_sha),
                    commit_ref=commit,
                )
