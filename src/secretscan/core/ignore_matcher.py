"""
Ignore matching for secretscan.

Decides whether a path under a scan root is excluded from scanning, using
explicitly configured files and directories plus gitignore-style patterns
read from the root's ignore file.

Supported pattern syntax is the non-negating subset of gitignore:
- Directory patterns (trailing /) match as path prefixes
- Glob patterns (*, ?, [...], **) match with gitignore wildmatch rules
- Plain patterns without glob characters also match as path prefixes
- Anchored patterns (leading /)

Negation patterns (!pattern) are not supported: they are dropped with a
warning, and the first matching pattern always excludes.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import pathspec

from secretscan.core.errors import IgnoreFileReadError

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_FILE = ".gitignore"

_GLOB_CHARS = frozenset("*?[")


@dataclass(frozen=True)
class IgnoreSpec:
    """
    Everything needed to decide path exclusion for one scan root.

    Attributes:
        explicit_files: Root-relative file paths excluded by exact match
        explicit_directories: Root-relative directories excluded with everything below
        patterns: Gitignore-style patterns in declaration order
        sensitive_suffixes: File name suffixes that are never scanned
    """

    explicit_files: frozenset[str] = frozenset()
    explicit_directories: frozenset[str] = frozenset()
    patterns: tuple[str, ...] = ()
    sensitive_suffixes: tuple[str, ...] = ()


def _normalize(path: str) -> str:
    """Normalize a relative path to forward slashes without leading ./ or /."""
    normalized = str(path).replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.strip("/")


def _has_prefix(path: str, prefix: str) -> bool:
    """Component-aware prefix check: 'a/b' is a prefix of 'a/b' and 'a/b/c', not 'a/bc'."""
    if not prefix:
        return False
    return path == prefix or path.startswith(prefix + "/")


def read_ignore_file(path: Path) -> list[str]:
    """
    Read patterns from a gitignore-style file.

    Blank lines and comments are skipped. A missing file yields no patterns.

    Raises:
        IgnoreFileReadError: For any read or decode failure other than the
                             file not existing
    """
    try:
        content = Path(path).read_bytes().decode("utf-8")
    except FileNotFoundError:
        logger.debug(f"Ignore file not found: {path}")
        return []
    except UnicodeDecodeError as e:
        raise IgnoreFileReadError(str(path), f"invalid UTF-8 encoding: {e}") from e
    except OSError as e:
        raise IgnoreFileReadError(str(path), str(e)) from e

    patterns: list[str] = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)

    logger.debug(f"Loaded {len(patterns)} patterns from {path}")
    return patterns


def load_ignore_spec(
    root: Path,
    files: list[str] | tuple[str, ...] | set[str] = (),
    directories: list[str] | tuple[str, ...] | set[str] = (),
    extra_patterns: list[str] | tuple[str, ...] = (),
    sensitive_suffixes: list[str] | tuple[str, ...] = (),
    ignore_file: str = DEFAULT_IGNORE_FILE,
) -> IgnoreSpec:
    """
    Build the IgnoreSpec for a scan root.

    The root's ignore file is read once. ``extra_patterns`` (configured default
    patterns) come before the file's patterns.

    Raises:
        IgnoreFileReadError: If the ignore file exists but cannot be read
    """
    file_patterns = read_ignore_file(Path(root) / ignore_file) if ignore_file else []

    return IgnoreSpec(
        explicit_files=frozenset(_normalize(f) for f in files if _normalize(f)),
        explicit_directories=frozenset(
            _normalize(d) for d in directories if _normalize(d)
        ),
        patterns=tuple(extra_patterns) + tuple(file_patterns),
        sensitive_suffixes=tuple(s for s in sensitive_suffixes if s),
    )


@dataclass(frozen=True)
class _CompiledPattern:
    """A pattern prepared once for repeated matching."""

    raw: str
    prefix: str
    directory_only: bool
    spec: pathspec.PathSpec | None


class IgnoreMatcher:
    """
    Decides inclusion of root-relative paths.

    Precedence, first match wins:
    1. Sensitive suffix carve-out
    2. Exact match against explicit files
    3. Explicit directory as a path prefix
    4. Patterns in declaration order
    """

    def __init__(self, spec: IgnoreSpec | None = None):
        self._spec = spec or IgnoreSpec()
        self._patterns: list[_CompiledPattern] = []

        for raw in self._spec.patterns:
            compiled = self._compile(raw)
            if compiled is not None:
                self._patterns.append(compiled)

    @property
    def spec(self) -> IgnoreSpec:
        return self._spec

    @property
    def pattern_count(self) -> int:
        """Return the number of usable patterns."""
        return len(self._patterns)

    @staticmethod
    def _compile(raw: str) -> _CompiledPattern | None:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#"):
            return None

        if pattern.startswith("!"):
            logger.warning(f"Negation patterns are not supported, ignoring '{raw}'")
            return None

        if pattern.endswith("/"):
            prefix = _normalize(pattern)
            if not prefix:
                return None
            return _CompiledPattern(raw=raw, prefix=prefix, directory_only=True, spec=None)

        try:
            spec = pathspec.PathSpec.from_lines(
                pathspec.patterns.GitWildMatchPattern, [pattern]
            )
        except ValueError as e:
            logger.warning(f"Malformed ignore pattern '{raw}': {e}")
            return None

        prefix = "" if _GLOB_CHARS & set(pattern) else _normalize(pattern)
        return _CompiledPattern(raw=raw, prefix=prefix, directory_only=False, spec=spec)

    def is_ignored(self, rel_path: str) -> bool:
        """
        Check whether a root-relative file path is excluded from scanning.

        Args:
            rel_path: Path relative to the scan root

        Returns:
            True if the path must not be scanned
        """
        path = _normalize(rel_path)

        if any(path.endswith(suffix) for suffix in self._spec.sensitive_suffixes):
            logger.debug(f"Skipping sensitive file: {path}")
            return True

        if path in self._spec.explicit_files:
            return True

        if self._in_explicit_directory(path):
            return True

        for pattern in self._patterns:
            if pattern.directory_only:
                if _has_prefix(path, pattern.prefix):
                    return True
                continue
            if pattern.spec is not None and pattern.spec.match_file(path):
                return True
            if pattern.prefix and _has_prefix(path, pattern.prefix):
                return True

        return False

    def is_ignored_dir(self, rel_dir: str) -> bool:
        """
        Check whether every path below a directory is excluded by a prefix rule.

        Only prefix rules are consulted, so a True result is equivalent to
        checking each child with is_ignored() and lets traversal skip the subtree.
        """
        path = _normalize(rel_dir)
        if not path:
            return False

        if self._in_explicit_directory(path):
            return True

        return any(
            pattern.prefix and _has_prefix(path, pattern.prefix)
            for pattern in self._patterns
        )

    def _in_explicit_directory(self, path: str) -> bool:
        return any(_has_prefix(path, d) for d in self._spec.explicit_directories)
