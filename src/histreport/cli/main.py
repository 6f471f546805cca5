"""histreport CLI implementation.

Provides the command-line interface for generating history-aware reports.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from histreport.config import CLIOverrides, ConfigLoader
from histreport.engine import ReportEngine
from histreport.exceptions import HistReportError
from histreport.history.store import JsonHistoryStore
from histreport.ingestion import AdapterRegistry, create_adapter
from histreport.models.result import RunInfo, TestStatus
from histreport.reporting import JsonReportGenerator, QualityGate

if TYPE_CHECKING:
    from histreport.models.report import ReportModel
    from histreport.reporting import QualityGateResult

DEFAULT_HISTORY_DIR = "test-history"

STATUS_STYLES = {
    TestStatus.PASSED: "green",
    TestStatus.FAILED: "red",
    TestStatus.BROKEN: "yellow",
    TestStatus.SKIPPED: "dim",
    TestStatus.UNKNOWN: "magenta",
}

app = typer.Typer(
    name="histreport",
    help="History-aware test report engine.",
    no_args_is_help=True,
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.command()
def generate(  # noqa: PLR0913 - Typer requires CLI args as function parameters
    sources: Annotated[
        list[Path],
        typer.Argument(help="Result files or directories to ingest."),
    ],
    source_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Source adapter (allure, junit)."),
    ] = "allure",
    history_dir: Annotated[
        Path | None,
        typer.Option("--history-dir", "-d", help="Directory holding test history."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to histreport.yaml."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the report model as JSON."),
    ] = None,
    run_id: Annotated[
        str | None,
        typer.Option("--run-id", help="Run id; reuse one to regenerate a run."),
    ] = None,
    run_name: Annotated[
        str | None,
        typer.Option("--run-name", help="Human readable run name."),
    ] = None,
    retention: Annotated[
        int | None,
        typer.Option("--retention", help="History entries kept per test."),
    ] = None,
    flaky_window: Annotated[
        int | None,
        typer.Option("--flaky-window", help="Runs considered for flaky detection."),
    ] = None,
    allow_empty: Annotated[
        bool | None,
        typer.Option("--allow-empty/--require-results", help="Accept runs without results."),
    ] = None,
    fail_on_gate: Annotated[
        bool,
        typer.Option("--fail-on-gate", help="Exit with error code if the quality gate fails."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """Ingest a run, merge it into history and summarize it.

    Example:
        histreport generate allure-results --history-dir .history -o report.json
    """
    _configure_logging(verbose)

    try:
        file_config = ConfigLoader.load_config(config_path)
        overrides = CLIOverrides(
            history_retention=retention,
            flaky_window=flaky_window,
            allow_empty=allow_empty,
            history_dir=str(history_dir) if history_dir else None,
        )
        engine_config = ConfigLoader.resolve_engine_config(file_config, overrides)
        history_config = ConfigLoader.resolve_history_config(file_config, overrides)
        gate_config = ConfigLoader.resolve_quality_gate_config(file_config)

        adapters = [create_adapter(source_format, source) for source in sources]
        engine = ReportEngine(JsonHistoryStore(Path(history_config.dir)), engine_config)
        run = RunInfo(run_id=run_id, name=run_name) if run_id else RunInfo(name=run_name)

        report = asyncio.run(engine.generate_async(adapters, run))
    except HistReportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    _display_summary(report)
    _display_flaky(report)

    gate_results: list[QualityGateResult] | None = None
    if gate_config.enabled:
        gate_results = QualityGate(gate_config).evaluate(report)
        _display_quality_gate(gate_results)

    if output is not None:
        JsonReportGenerator().generate(report, output, quality_gate=gate_results)
        console.print(f"[green]Report generated: {output}[/green]")

    if fail_on_gate and gate_results and not QualityGate.passed(gate_results):
        raise typer.Exit(code=1)


def _display_summary(report: ReportModel) -> None:
    """Display the summary rollup of a report."""
    summary = report.summary

    table = Table(title=f"Run {report.run.name or report.run.run_id}", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Tests", str(summary.total))
    for status in TestStatus:
        count = summary.by_status.get(status, 0)
        if count:
            style = STATUS_STYLES[status]
            table.add_row(f"  {status.value}", f"[{style}]{count}[/{style}]")
    table.add_row("Pass Rate", f"{summary.pass_rate:.0%}")
    if summary.previous_pass_rate is not None:
        table.add_row("Trend", f"{summary.trend_delta:+.0%}")
    table.add_row("Flaky", str(summary.flaky))
    table.add_row("Retried", str(summary.retried))
    table.add_row("Total Duration", f"{summary.total_duration}ms")
    table.add_row("Skipped Records", str(summary.skipped_records))
    table.add_row("Duplicate Identities", str(summary.duplicate_identities))

    console.print(table)


def _display_flaky(report: ReportModel) -> None:
    """Display the flaky tests of a report."""
    flaky = [e for e in report.entries if e.stats.flaky]
    if not flaky:
        return

    table = Table(title="Flaky Tests")
    table.add_column("Test", style="cyan")
    table.add_column("Attempts")
    table.add_column("Pass Rate", justify="right")

    for entry in flaky:
        attempts = [*entry.result.retries, entry.result.status]
        table.add_row(
            entry.result.full_name or entry.result.name,
            " -> ".join(s.value for s in attempts),
            f"{entry.stats.pass_rate:.0%}",
        )

    console.print(table)


def _display_quality_gate(results: list[QualityGateResult]) -> None:
    """Display quality gate outcomes."""
    for result in results:
        mark = "[green]✓[/green]" if result.success else "[red]✗[/red]"
        console.print(f"{mark} {result.message}")


@app.command()
def history(
    history_id: Annotated[
        str,
        typer.Argument(help="History id of the test."),
    ],
    history_dir: Annotated[
        Path,
        typer.Option("--history-dir", "-d", help="Directory holding test history."),
    ] = Path(DEFAULT_HISTORY_DIR),
) -> None:
    """Show the stored history of a test.

    Example:
        histreport history 3f2a...c1.d41d...7e --history-dir .history
    """
    if not history_dir.exists():
        console.print(f"[red]Error:[/red] History directory not found: {history_dir}")
        raise typer.Exit(code=1)

    try:
        item = JsonHistoryStore(history_dir).get(history_id)
    except HistReportError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if item is None or not item.entries:
        console.print(f"[yellow]No history for: {history_id}[/yellow]")
        raise typer.Exit(code=0)

    latest = item.entries[-1].result
    console.print(Panel(f"[bold]{latest.full_name or latest.name}[/bold]"))

    table = Table()
    table.add_column("Run", style="cyan")
    table.add_column("Timestamp")
    table.add_column("Status", justify="center")
    table.add_column("Duration", justify="right")
    table.add_column("Retries", justify="right")

    for entry in item.entries:
        style = STATUS_STYLES[entry.result.status]
        table.add_row(
            entry.run_id[:8],
            entry.run_timestamp.isoformat(timespec="seconds"),
            f"[{style}]{entry.result.status.value}[/{style}]",
            f"{entry.result.duration}ms",
            str(entry.result.retry_count),
        )

    console.print(table)


@app.command()
def adapters() -> None:
    """List available source adapters."""
    console.print("[bold]Available adapters:[/bold]")
    for name in AdapterRegistry.list_adapters():
        console.print(f"  - {name}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
