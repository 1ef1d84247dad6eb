"""
Infrastructure Layer - Result collaborators: report files and webhook notifications.
"""

from secretscan.infrastructure.notifier import WebhookNotifier, build_summary
from secretscan.infrastructure.report_writer import ReportWriter

__all__ = [
    "ReportWriter",
    "WebhookNotifier",
    "build_summary",
]
