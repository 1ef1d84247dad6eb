"""
Scan Service for secretscan.

Coordinates the scan workflow: rule compilation, ignore spec construction,
traversal source validation, the parallel scan itself, and delivery of the
result to the report writer and webhook notifier.

Rule, ignore-file and scan-root failures are fatal and raised before any work
is dispatched. Delivery failures are logged and recorded on the outcome; they
never alter the computed ScanResult.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from secretscan.core.config import SecretScanConfig
from secretscan.core.errors import DeliveryError
from secretscan.core.ignore_matcher import IgnoreMatcher
from secretscan.core.rules import Rule, compile_rules
from secretscan.infrastructure.notifier import WebhookNotifier, build_summary
from secretscan.infrastructure.report_writer import ReportWriter
from secretscan.scanner.engine import ProgressCallback, ScanEngine
from secretscan.scanner.git_history import GitHistorySource
from secretscan.scanner.interfaces import ScanSourceInterface
from secretscan.scanner.models import ScanResult
from secretscan.scanner.traversal import WorkingTreeSource

logger = logging.getLogger(__name__)


@dataclass
class ScanOutcome:
    """Result of a scan plus what happened when delivering it."""

    result: ScanResult
    target: str
    report_path: Path | None = None
    delivery_errors: list[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """1 when secrets were found, 0 for a clean scan."""
        return 1 if self.result.has_matches else 0


class ScanService:
    """
    Service for scanning working trees and commit histories for secrets.
    """

    def __init__(
        self,
        config: SecretScanConfig,
        report_writer: Optional[ReportWriter] = None,
        notifier: Optional[WebhookNotifier] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the scan service.

        Args:
            config: Scan configuration
            report_writer: Report collaborator (default: from config.report, if enabled)
            notifier: Notification collaborator (default: from config.notify, if a URL is set)
            progress_callback: Optional callback(current, total, message)

        Raises:
            ValueError: If the configured report format is unsupported
        """
        self._config = config
        self._progress_callback = progress_callback

        if report_writer is None and config.report.enabled:
            report_writer = ReportWriter(config.report.output_dir, config.report.format)
        self._report_writer = report_writer

        if notifier is None and config.notify.webhook_url:
            notifier = WebhookNotifier(config.notify.webhook_url, timeout=config.notify.timeout)
        self._notifier = notifier

    def compile_rules(self) -> tuple[Rule, ...]:
        """
        Compile the configured rules.

        Raises:
            RuleError: If any rule is invalid
        """
        return compile_rules(self._config.rules)

    def scan_directory(
        self,
        root: Path,
        worker_count: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScanOutcome:
        """
        Scan a working tree.

        Raises:
            RuleError: If the rule set is invalid
            IgnoreFileReadError: If the root's ignore file cannot be read
            ScanRootError: If the root is missing or unreadable
        """
        root = Path(root)
        rules = self.compile_rules()
        ignore_spec = self._config.build_ignore_spec(root)
        source = WorkingTreeSource(root, IgnoreMatcher(ignore_spec))
        return self._run(source, rules, worker_count, cancel_event)

    def scan_history(
        self,
        repo_path: Path,
        max_commits: int | None = None,
        ref: str = "HEAD",
        worker_count: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScanOutcome:
        """
        Scan every commit reachable from a ref.

        Raises:
            RuleError: If the rule set is invalid
            IgnoreFileReadError: If the repository's ignore file cannot be read
            ScanRootError: If the path is not a readable git repository
        """
        repo_path = Path(repo_path)
        rules = self.compile_rules()
        ignore_spec = self._config.build_ignore_spec(repo_path)
        source = GitHistorySource(
            repo_path, IgnoreMatcher(ignore_spec), max_commits=max_commits, ref=ref
        )
        return self._run(source, rules, worker_count, cancel_event)

    def _run(
        self,
        source: ScanSourceInterface,
        rules: tuple[Rule, ...],
        worker_count: int | None,
        cancel_event: threading.Event | None,
    ) -> ScanOutcome:
        scanning = self._config.scanning
        engine = ScanEngine(
            worker_count=worker_count if worker_count is not None else scanning.max_workers,
            queue_size=scanning.queue_size,
            skip_binary=scanning.skip_binary,
            progress_callback=self._progress_callback,
        )

        result = engine.scan(source, rules, cancel_event=cancel_event)
        outcome = ScanOutcome(result=result, target=source.description)
        self._deliver(outcome)
        return outcome

    def _deliver(self, outcome: ScanOutcome) -> None:
        """Hand a result with matches to the report writer and notifier."""
        if not outcome.result.has_matches:
            return

        if self._report_writer is not None:
            try:
                outcome.report_path = self._report_writer.write(outcome.result)
            except DeliveryError as e:
                logger.error(f"Report delivery failed: {e}")
                outcome.delivery_errors.append(str(e))

        if self._notifier is not None:
            summary = build_summary(outcome.result, outcome.target)
            try:
                asyncio.run(self._notify(summary))
            except DeliveryError as e:
                logger.error(f"Notification delivery failed: {e}")
                outcome.delivery_errors.append(str(e))

    async def _notify(self, summary: str) -> None:
        try:
            await self._notifier.send(summary)
        finally:
            await self._notifier.close()
