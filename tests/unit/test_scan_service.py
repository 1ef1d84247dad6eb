"""
Unit tests for ScanService orchestration and result delivery.
"""

import json
from pathlib import Path

import httpx
import pytest

from secretscan.core.config import IgnoreConfig, ReportConfig, SecretScanConfig
from secretscan.core.errors import (
    IgnoreFileReadError,
    InvalidPatternError,
    ReportWriteError,
    ScanRootError,
)
from secretscan.core.rules import RuleSpec
from secretscan.infrastructure.notifier import WebhookNotifier
from secretscan.infrastructure.report_writer import ReportWriter
from secretscan.services import ScanService


def _config(tmp_path: Path, **kwargs) -> SecretScanConfig:
    return SecretScanConfig(
        rules=[RuleSpec(id="generic-key", regex=r"sk_live_[0-9]+")],
        report=ReportConfig(enabled=True, format="json", output_dir=str(tmp_path / "reports")),
        **kwargs,
    )


def _tree(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    (root / "secrets.env").write_text("API_KEY=sk_live_12345\n")
    (root / "clean.txt").write_text("nothing\n")
    return root


class _FailingReportWriter(ReportWriter):
    def write(self, result):
        raise ReportWriteError("disk full")


class TestScanDirectory:
    """Test working tree scans through the service."""

    def test_secret_found_writes_report(self, tmp_path):
        root = _tree(tmp_path)

        outcome = ScanService(_config(tmp_path)).scan_directory(root)

        assert outcome.exit_code == 1
        assert [m.path for m in outcome.result.matches] == ["secrets.env"]
        assert outcome.target == str(root)
        assert outcome.report_path is not None
        data = json.loads(outcome.report_path.read_text())
        assert data["matches"][0]["secret"] == "sk_live_12345"
        assert outcome.delivery_errors == []

    def test_clean_scan_skips_delivery(self, tmp_path):
        root = tmp_path / "repo"
        root.mkdir()
        (root / "clean.txt").write_text("nothing\n")

        outcome = ScanService(_config(tmp_path)).scan_directory(root)

        assert outcome.exit_code == 0
        assert outcome.report_path is None
        assert not (tmp_path / "reports").exists()

    def test_gitignore_respected(self, tmp_path):
        root = _tree(tmp_path)
        (root / ".gitignore").write_text("*.env\n")

        outcome = ScanService(_config(tmp_path)).scan_directory(root)

        assert outcome.exit_code == 0

    def test_git_directory_excluded_by_default(self, tmp_path):
        root = tmp_path / "repo"
        (root / ".git").mkdir(parents=True)
        (root / ".git" / "config").write_text("token = sk_live_1\n")

        outcome = ScanService(_config(tmp_path)).scan_directory(root)

        assert outcome.result.matches == ()

    def test_sensitive_suffix_carve_out(self, tmp_path):
        root = _tree(tmp_path)
        config = _config(tmp_path, ignore=IgnoreConfig(sensitive_suffixes=[".env"]))

        outcome = ScanService(config).scan_directory(root)

        assert outcome.result.matches == ()
        assert outcome.result.files_scanned == 1

    def test_invalid_rule_fails_before_traversal(self, tmp_path):
        config = _config(tmp_path)
        config.rules.append(RuleSpec(id="bad", regex="(unclosed"))

        # The root does not exist either; the rule error must win
        with pytest.raises(InvalidPatternError):
            ScanService(config).scan_directory(tmp_path / "missing")

    def test_missing_root(self, tmp_path):
        with pytest.raises(ScanRootError):
            ScanService(_config(tmp_path)).scan_directory(tmp_path / "missing")

    def test_unreadable_ignore_file_is_fatal(self, tmp_path):
        root = _tree(tmp_path)
        (root / ".gitignore").write_bytes(b"\xff\xfe")

        with pytest.raises(IgnoreFileReadError):
            ScanService(_config(tmp_path)).scan_directory(root)


class TestDelivery:
    """Test that delivery failures never alter the result."""

    def test_delivery_failures_recorded(self, tmp_path):
        root = _tree(tmp_path)
        posted = []

        async def handler(request: httpx.Request) -> httpx.Response:
            posted.append(json.loads(request.content)["content"])
            return httpx.Response(500)

        notifier = WebhookNotifier(
            "https://example.com/hook",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        service = ScanService(
            _config(tmp_path),
            report_writer=_FailingReportWriter(tmp_path),
            notifier=notifier,
        )

        outcome = service.scan_directory(root)

        assert len(outcome.result.matches) == 1
        assert outcome.exit_code == 1
        assert outcome.report_path is None
        assert len(outcome.delivery_errors) == 2
        assert "disk full" in outcome.delivery_errors[0]
        assert posted == [f"Secrets found in {root}: 1 match(es) in 1 file(s) (rules: generic-key)"]

    def test_notification_sent_on_success(self, tmp_path):
        root = _tree(tmp_path)
        posted = []

        async def handler(request: httpx.Request) -> httpx.Response:
            posted.append(request)
            return httpx.Response(204)

        notifier = WebhookNotifier(
            "https://example.com/hook",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        config = _config(tmp_path)
        config.report.enabled = False

        outcome = ScanService(config, notifier=notifier).scan_directory(root)

        assert len(posted) == 1
        assert outcome.delivery_errors == []
        assert outcome.report_path is None

    def test_invalid_report_format(self, tmp_path):
        config = _config(tmp_path)
        config.report.format = "xml"

        with pytest.raises(ValueError):
            ScanService(config)


class TestCompileRules:
    """Test rule validation through the service."""

    def test_builtin_rules(self):
        rules = ScanService(SecretScanConfig()).compile_rules()

        assert len(rules) >= 5
