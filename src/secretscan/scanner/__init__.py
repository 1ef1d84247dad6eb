"""
Scanner module for secretscan.

Provides tree and history traversal, bounded parallel line scanning against
compiled rules, and thread-safe aggregation of matches.
"""

from .aggregator import MatchAggregator, WaitGroup
from .engine import ScanEngine, default_worker_count, scan
from .git_history import GitHistorySource
from .interfaces import ScanSourceInterface
from .line_scanner import decode_line, scan_lines
from .models import FileError, Match, ScanResult, ScanTarget
from .traversal import WorkingTreeSource

__all__ = [
    # Engine
    "ScanEngine",
    "scan",
    "default_worker_count",
    # Sources
    "ScanSourceInterface",
    "WorkingTreeSource",
    "GitHistorySource",
    # Line scanning
    "scan_lines",
    "decode_line",
    # Aggregation
    "MatchAggregator",
    "WaitGroup",
    # Models
    "ScanTarget",
    "Match",
    "FileError",
    "ScanResult",
]
