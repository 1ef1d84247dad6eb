"""
Report writer for scan results.

Serializes a ScanResult to ``<output_dir>/report_<unix-timestamp>.<format>``.
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from secretscan.core.config import SUPPORTED_REPORT_FORMATS
from secretscan.core.errors import ReportWriteError
from secretscan.scanner.models import ScanResult

logger = logging.getLogger(__name__)

_CSV_FIELDS = ["rule_id", "path", "line_number", "commit_ref", "secret", "line_text"]


class ReportWriter:
    """Writes scan reports in JSON or CSV format."""

    def __init__(self, output_dir: Path | str = "reports", format: str = "json"):
        """
        Initialize the writer.

        Args:
            output_dir: Directory receiving report files (created on demand)
            format: One of "json" or "csv"

        Raises:
            ValueError: If the format is not supported
        """
        if format not in SUPPORTED_REPORT_FORMATS:
            raise ValueError(
                f"Unknown report format: {format} "
                f"(expected one of {', '.join(SUPPORTED_REPORT_FORMATS)})"
            )
        self._output_dir = Path(output_dir)
        self._format = format

    @property
    def format(self) -> str:
        return self._format

    def build_report(self, result: ScanResult, now: datetime | None = None) -> dict:
        """Build the JSON report body."""
        now = now or datetime.now(timezone.utc)
        return {
            "timestamp": now.isoformat(timespec="seconds"),
            "files_scanned": result.files_scanned,
            "duration_seconds": round(result.duration_seconds, 3),
            "cancelled": result.cancelled,
            "matches": [match.to_dict() for match in result.matches],
            "errors": [error.to_dict() for error in result.errors],
        }

    def write(self, result: ScanResult) -> Path:
        """
        Write the report for a result.

        Returns:
            Path of the written report

        Raises:
            ReportWriteError: If the report cannot be written
        """
        now = datetime.now(timezone.utc)
        path = self._output_dir / f"report_{int(now.timestamp())}.{self._format}"

        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            if self._format == "json":
                content = json.dumps(self.build_report(result, now), indent=2)
                path.write_text(content, encoding="utf-8")
            else:
                self._write_csv(result, path)
        except OSError as e:
            raise ReportWriteError(f"Failed to write report {path}: {e}") from e

        logger.info(
            f"Report written to {path}",
            extra={"report_path": str(path), "match_count": len(result.matches)},
        )
        return path

    def _write_csv(self, result: ScanResult, path: Path) -> None:
        with open(path, "w", newline="", encoding="utf-8", errors="backslashreplace") as f:
            writer = csv.DictWriter(f, fieldnames=_CSV_FIELDS)
            writer.writeheader()
            for match in result.matches:
                row = match.to_dict()
                writer.writerow({key: row[key] for key in _CSV_FIELDS})
