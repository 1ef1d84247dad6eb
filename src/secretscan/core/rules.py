"""
Rule compiler for secretscan.

Turns rule definitions into immutable, pre-compiled Rule objects that are
shared read-only by every scan worker.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from secretscan.core.errors import (
    DuplicateRuleError,
    InvalidGroupError,
    InvalidPatternError,
)

logger = logging.getLogger(__name__)


@dataclass
class RuleSpec:
    """
    Uncompiled rule definition as it appears in configuration.

    Attributes:
        id: Unique rule identifier
        description: Human-readable description
        regex: Raw regular expression
        secret_group: Capture group holding the secret (0 = whole match)
        keywords: Case-sensitive substrings, one of which must appear in a
                  line before the regex is evaluated
    """

    id: str
    description: str = ""
    regex: str = ""
    secret_group: int = 0
    keywords: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "RuleSpec":
        """
        Create a RuleSpec from a configuration mapping.

        Accepts ``secretGroup`` as an alias of ``secret_group``.

        Raises:
            ValueError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise ValueError(f"Rule entry must be a mapping, got {type(data).__name__}")

        rule_id = data.get("id")
        if not rule_id or not isinstance(rule_id, str):
            raise ValueError(f"Rule entry is missing a string 'id': {data!r}")

        regex = data.get("regex")
        if not isinstance(regex, str) or not regex:
            raise ValueError(f"Rule '{rule_id}' is missing a string 'regex'")

        secret_group = data.get("secret_group", data.get("secretGroup", 0))
        if isinstance(secret_group, bool) or not isinstance(secret_group, int):
            raise ValueError(f"Rule '{rule_id}' has a non-integer secret group")

        keywords = data.get("keywords") or []
        if isinstance(keywords, str) or not all(isinstance(k, str) for k in keywords):
            raise ValueError(f"Rule '{rule_id}' keywords must be a list of strings")

        return cls(
            id=rule_id,
            description=str(data.get("description", "")),
            regex=regex,
            secret_group=secret_group,
            keywords=list(keywords),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "regex": self.regex,
            "secret_group": self.secret_group,
            "keywords": list(self.keywords),
        }


@dataclass(frozen=True)
class Rule:
    """
    A compiled rule, ready to match.

    Attributes:
        id: Unique rule identifier
        description: Human-readable description
        pattern: Compiled regular expression
        secret_group: Capture group holding the secret (0 = whole match)
        keywords: Pre-filter substrings; empty means always evaluate the regex
    """

    id: str
    description: str
    pattern: re.Pattern[str]
    secret_group: int = 0
    keywords: frozenset[str] = frozenset()

    def matches(self, line: str) -> re.Match[str] | None:
        """
        Evaluate the rule against one line.

        The keyword pre-filter runs first; the regex is only executed when at
        least one keyword occurs in the line.
        """
        if self.keywords and not any(keyword in line for keyword in self.keywords):
            return None
        return self.pattern.search(line)

    def secret(self, match: re.Match[str]) -> str:
        """Return the sensitive substring selected by ``secret_group``."""
        value = match.group(self.secret_group)
        if value is None:
            # Optional group that did not participate in the match
            return match.group(0)
        return value


def compile_rule(spec: RuleSpec) -> Rule:
    """
    Compile a single rule definition.

    Raises:
        InvalidPatternError: If the regex does not compile
        InvalidGroupError: If secret_group is outside the pattern's groups
    """
    try:
        pattern = re.compile(spec.regex)
    except re.error as e:
        raise InvalidPatternError(spec.id, spec.regex, str(e)) from e

    if spec.secret_group < 0 or spec.secret_group > pattern.groups:
        raise InvalidGroupError(spec.id, spec.secret_group, pattern.groups)

    return Rule(
        id=spec.id,
        description=spec.description,
        pattern=pattern,
        secret_group=spec.secret_group,
        keywords=frozenset(k for k in spec.keywords if k),
    )


def compile_rules(specs: Iterable[RuleSpec]) -> tuple[Rule, ...]:
    """
    Compile rule definitions into Rule objects, preserving order.

    Compilation happens once per scan invocation; the returned tuple is shared
    by all workers.

    Raises:
        InvalidPatternError: If any pattern does not compile
        InvalidGroupError: If any secret_group is out of range
        DuplicateRuleError: If two rules share an id
    """
    rules: list[Rule] = []
    seen: set[str] = set()

    for spec in specs:
        if spec.id in seen:
            raise DuplicateRuleError(spec.id)
        seen.add(spec.id)
        rules.append(compile_rule(spec))

    logger.debug(f"Compiled {len(rules)} rules")
    return tuple(rules)
