"""
CLI for secretscan.

Provides command-line interface for scanning working trees and commit
histories for secrets.

Exit codes:
    0  scan completed, no secrets found
    1  scan completed, secrets found
    2  scan could not run (invalid configuration, rules or scan root)
"""

import logging
import threading
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from secretscan.core.config import SecretScanConfig, load_config
from secretscan.core.errors import SecretScanError
from secretscan.services import ScanOutcome, ScanService

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="secretscan",
    help="Scan files and git history for accidentally committed secrets",
    add_completion=False,
)

EXIT_FATAL = 2

# Conventional config file picked up from the working directory
DEFAULT_CONFIG_FILE = Path("rules.toml")

_MAX_LINE_DISPLAY = 120


def _load_cli_config(config_path: Optional[Path]) -> SecretScanConfig:
    """Load config from an explicit path, ./rules.toml if present, or defaults."""
    load_dotenv()
    if config_path is None and DEFAULT_CONFIG_FILE.exists():
        config_path = DEFAULT_CONFIG_FILE
    return load_config(config_path)


def _configure_logging(cfg: SecretScanConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=cfg.logging.format)


def _truncate(text: str, limit: int = _MAX_LINE_DISPLAY) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def _print_outcome(outcome: ScanOutcome, show_commits: bool) -> None:
    result = outcome.result

    if result.has_matches:
        table = Table(title="Potential secrets", show_lines=False)
        table.add_column("Rule", style="cyan", no_wrap=True)
        table.add_column("File", style="magenta")
        table.add_column("Line", justify="right")
        if show_commits:
            table.add_column("Commit", style="dim", no_wrap=True)
        table.add_column("Text")

        for match in result.matches:
            row = [
                Text(match.rule_id),
                Text(match.path),
                str(match.line_number),
            ]
            if show_commits:
                row.append(Text((match.commit_ref or "")[:10]))
            row.append(Text(_truncate(match.display_text)))
            table.add_row(*row)

        console.print(table)

    summary = Table.grid(padding=1)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("Files Scanned:", str(result.files_scanned))
    summary.add_row("Matches:", str(len(result.matches)))
    summary.add_row("Duration:", f"{result.duration_seconds:.2f}s")
    if result.errors:
        summary.add_row("Unreadable Files:", f"[yellow]{result.error_count}[/yellow]")
    if outcome.report_path is not None:
        summary.add_row("Report:", str(outcome.report_path))

    if result.has_matches:
        title, style = "[bold red]Secrets Found[/bold red]", "red"
    else:
        title, style = "[bold green]No Secrets Found[/bold green]", "green"
    console.print(Panel(summary, title=title, border_style=style, expand=False))

    if result.cancelled:
        console.print("[yellow]Scan was cancelled; results are partial.[/yellow]")

    if result.errors:
        console.print("\n[bold yellow]Unreadable Files:[/bold yellow]")
        for error in result.errors[:5]:
            console.print(f"  - {error.path or error.commit_ref}: {error.message}", markup=False)
        if len(result.errors) > 5:
            console.print(f"  ... and {len(result.errors) - 5} more")

    for message in outcome.delivery_errors:
        console.print(f"[yellow]Warning:[/yellow] {message}")

    if result.has_matches:
        console.print(f"Found {len(result.matches)} potential secret(s)")
    else:
        console.print("No secrets found")


@app.command()
def scan(
    path: Path = typer.Argument(..., help="Directory or repository to scan"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to the configuration file (default: ./rules.toml)"
    ),
    discord_webhook: Optional[str] = typer.Option(
        None, "--discord-webhook", "-d", help="Discord webhook URL for notifications"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Number of parallel workers"
    ),
    history: bool = typer.Option(
        False, "--history", help="Scan the commit history instead of the working tree"
    ),
    max_commits: Optional[int] = typer.Option(
        None, "--max-commits", min=1, help="Limit the number of commits scanned with --history"
    ),
    report_format: Optional[str] = typer.Option(
        None, "--report-format", help="Report format: json or csv"
    ),
    report_dir: Optional[Path] = typer.Option(
        None, "--report-dir", help="Directory receiving report files"
    ),
    no_report: bool = typer.Option(False, "--no-report", help="Do not write a report file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Scan a directory (or its git history) for secrets."""
    try:
        cfg = _load_cli_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_FATAL)

    _configure_logging(cfg, verbose)

    # Command line options override the configuration
    if discord_webhook:
        cfg.notify.webhook_url = discord_webhook
    if report_format:
        cfg.report.format = report_format
    if report_dir is not None:
        cfg.report.output_dir = str(report_dir)
    if no_report:
        cfg.report.enabled = False

    cancel_event = threading.Event()
    target = "history of " + str(path) if history else str(path)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"Scanning {target}...", total=None)

            def update_progress(current: int, total: Optional[int], message: str) -> None:
                progress.update(task, description=f"[{current} files] {message}")

            service = ScanService(cfg, progress_callback=update_progress)
            if history:
                outcome = service.scan_history(
                    path, max_commits=max_commits, worker_count=workers, cancel_event=cancel_event
                )
            else:
                outcome = service.scan_directory(
                    path, worker_count=workers, cancel_event=cancel_event
                )
    except (SecretScanError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_FATAL)

    _print_outcome(outcome, show_commits=history)
    raise typer.Exit(outcome.exit_code)


@app.command("rules")
def list_rules(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to the configuration file (default: ./rules.toml)"
    ),
):
    """Validate and list the configured rules."""
    try:
        cfg = _load_cli_config(config_path)
        rules = ScanService(cfg).compile_rules()
    except (FileNotFoundError, ValueError, SecretScanError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(EXIT_FATAL)

    table = Table(title=f"{len(rules)} rule(s)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Group", justify="right")
    table.add_column("Keywords", style="dim")

    for rule in rules:
        table.add_row(
            Text(rule.id),
            Text(rule.description),
            str(rule.secret_group),
            Text(", ".join(sorted(rule.keywords))),
        )

    console.print(table)


if __name__ == "__main__":
    app()
