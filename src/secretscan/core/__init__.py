"""
Core Layer - Configuration, rule compilation, ignore matching, and error types.
"""

from secretscan.core.config import (
    IgnoreConfig,
    LoggingConfig,
    NotifyConfig,
    ReportConfig,
    ScanningConfig,
    SecretScanConfig,
    load_config,
)
from secretscan.core.errors import (
    DeliveryError,
    DuplicateRuleError,
    IgnoreFileReadError,
    InvalidGroupError,
    InvalidPatternError,
    NotificationError,
    ReportWriteError,
    RuleError,
    ScanRootError,
    SecretScanError,
)
from secretscan.core.ignore_matcher import IgnoreMatcher, IgnoreSpec, load_ignore_spec
from secretscan.core.rules import Rule, RuleSpec, compile_rule, compile_rules

__all__ = [
    # Config
    "SecretScanConfig",
    "IgnoreConfig",
    "ScanningConfig",
    "ReportConfig",
    "NotifyConfig",
    "LoggingConfig",
    "load_config",
    # Rules
    "RuleSpec",
    "Rule",
    "compile_rule",
    "compile_rules",
    # Ignore matching
    "IgnoreSpec",
    "IgnoreMatcher",
    "load_ignore_spec",
    # Errors
    "SecretScanError",
    "RuleError",
    "InvalidPatternError",
    "InvalidGroupError",
    "DuplicateRuleError",
    "IgnoreFileReadError",
    "ScanRootError",
    "DeliveryError",
    "ReportWriteError",
    "NotificationError",
]
