"""
secretscan - Detect accidentally committed secrets in a file tree or commit history.
"""

from secretscan.core import (
    IgnoreMatcher,
    IgnoreSpec,
    Rule,
    RuleSpec,
    SecretScanConfig,
    compile_rules,
    load_config,
    load_ignore_spec,
)
from secretscan.scanner import Match, ScanEngine, ScanResult, scan

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "SecretScanConfig",
    "load_config",
    "RuleSpec",
    "Rule",
    "compile_rules",
    "IgnoreSpec",
    "IgnoreMatcher",
    "load_ignore_spec",
    "ScanEngine",
    "scan",
    "Match",
    "ScanResult",
]
