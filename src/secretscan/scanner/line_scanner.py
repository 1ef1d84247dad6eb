"""
Line scanner: evaluates compiled rules against a file's lines.
"""

import threading
from collections.abc import Iterable, Iterator, Sequence

from secretscan.core.rules import Rule

from .models import Match


def decode_line(raw: bytes) -> str:
    """
    Decode one raw line, dropping the line terminator.

    Undecodable bytes are kept as surrogate escapes so that rules still see
    (and can match around) them.
    """
    return raw.decode("utf-8", "surrogateescape").rstrip("\r\n")


def scan_lines(
    lines: Iterable[str],
    path: str,
    rules: Sequence[Rule],
    commit_ref: str | None = None,
    cancel_event: threading.Event | None = None,
) -> Iterator[Match]:
    """
    Evaluate every rule against every line.

    Args:
        lines: Decoded lines in file order
        path: Path recorded on each Match
        rules: Compiled rules, shared read-only
        commit_ref: Commit recorded on each Match
        cancel_event: Scanning stops before the next line when set

    Yields:
        One Match per (line, triggered rule), in line order then rule order
    """
    for line_number, line in enumerate(lines, start=1):
        if cancel_event is not None and cancel_event.is_set():
            return

        for rule in rules:
            found = rule.matches(line)
            if found is None:
                continue
            yield Match(
                rule_id=rule.id,
                path=path,
                line_number=line_number,
                line_text=line,
                commit_ref=commit_ref,
                secret=rule.secret(found),
            )
