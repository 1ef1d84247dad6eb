"""
Service Layer - ScanService orchestration.
"""

from secretscan.services.scan_service import ScanOutcome, ScanService

__all__ = [
    "ScanService",
    "ScanOutcome",
]
