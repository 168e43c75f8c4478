"""Typer CLI for churn_analytics."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from churn_analytics.exceptions import ChurnAnalyticsError
from churn_analytics.filters import DatePeriod
from churn_analytics.pipeline import AnalyticsResult, export_outputs, run_pipeline
from churn_analytics.settings import Settings

app = typer.Typer(help="Churn and reactivation analytics.")
console = Console()

_DATE_FORMATS = ["%Y-%m-%d"]


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_settings(config: Path | None, **overrides) -> Settings:
    if config and config.exists():
        return Settings.from_yaml(config, **overrides)
    return Settings.from_args(**overrides)


def _run(
    config: Path | None,
    workbook: Path | None,
    churn_file: Path | None,
    reactivations_file: Path | None,
    output_dir: Path | None,
    period: DatePeriod,
    start: datetime | None,
    end: datetime | None,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> tuple[Settings, AnalyticsResult]:
    if (start is None) != (end is None):
        raise typer.BadParameter("--start and --end must be given together")
    if period == DatePeriod.CUSTOM_RANGE and start is None:
        raise typer.BadParameter("--period custom-range requires --start and --end")
    if end is not None:
        # --end is a calendar day; include all of it.
        end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    try:
        settings = _load_settings(
            config,
            workbook=workbook,
            churn_file=churn_file,
            reactivations_file=reactivations_file,
            output_dir=output_dir,
        )
        result = run_pipeline(
            settings, period=period, start=start, end=end, on_progress=on_progress
        )
    except ChurnAnalyticsError as e:
        console.print(f"[bold red]Failed to load analytics:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    return settings, result


def _summary_table(result: AnalyticsResult) -> Table:
    summary = result.summary
    metrics = result.metrics
    table = Table(title="Churn Summary")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Total churns", f"{summary.total_churns:,}")
    table.add_row("Reactivations", f"{metrics.total_reactivations:,}")
    table.add_row("Reactivation rate", f"{metrics.reactivation_rate:.1f}%")
    table.add_row("Avg days to reactivation", str(summary.average_reactivation_days))
    table.add_row(
        "Top churn category",
        f"{summary.top_churn_category} ({summary.top_churn_category_count})",
    )
    table.add_row(
        "Top competitor", f"{summary.top_competitor} (${summary.top_competitor_mrr:,.0f} MRR)"
    )
    table.add_row("Date parse errors", str(metrics.parse_error_count))
    return table


ConfigOpt = typer.Option(None, "--config", "-c", help="Path to config.yaml")
WorkbookOpt = typer.Option(None, "--workbook", "-w", help="Excel workbook with both sheets")
ChurnOpt = typer.Option(None, "--churn-file", help="Churn sheet (CSV/Excel)")
ReactivationsOpt = typer.Option(None, "--reactivations-file", help="Reactivation sheet")
PeriodOpt = typer.Option(DatePeriod.ALL_TIME, "--period", "-p", help="Named date period")
StartOpt = typer.Option(None, "--start", formats=_DATE_FORMATS, help="Range start (YYYY-MM-DD)")
EndOpt = typer.Option(None, "--end", formats=_DATE_FORMATS, help="Range end (YYYY-MM-DD)")
VerboseOpt = typer.Option(False, "--verbose", "-v", help="Verbose logging")


@app.command()
def analyze(
    config: Path = ConfigOpt,
    workbook: Path = WorkbookOpt,
    churn_file: Path = ChurnOpt,
    reactivations_file: Path = ReactivationsOpt,
    output_dir: Path = typer.Option(None, "--output-dir", "-o", help="Output directory"),
    period: DatePeriod = PeriodOpt,
    start: datetime = StartOpt,
    end: datetime = EndOpt,
    verbose: bool = VerboseOpt,
) -> None:
    """Run the full pipeline and write a JSON report."""
    _setup_logging(verbose)

    def on_progress(step: int, total: int, msg: str) -> None:
        console.print(f"  [{step + 1}/{total}] {msg}")

    console.print("[bold]Churn Analytics[/bold]")
    settings, result = _run(
        config,
        workbook,
        churn_file,
        reactivations_file,
        output_dir,
        period,
        start,
        end,
        on_progress=on_progress,
    )
    console.print(_summary_table(result))

    files = export_outputs(result, settings.output_dir)
    for f in files:
        console.print(f"  Output: {f}")
    console.print("[bold green]Done.[/bold green]")


@app.command()
def summary(
    config: Path = ConfigOpt,
    workbook: Path = WorkbookOpt,
    churn_file: Path = ChurnOpt,
    reactivations_file: Path = ReactivationsOpt,
    period: DatePeriod = PeriodOpt,
    verbose: bool = VerboseOpt,
) -> None:
    """Print headline churn numbers."""
    _setup_logging(verbose)
    _, result = _run(config, workbook, churn_file, reactivations_file, None, period, None, None)
    console.print(_summary_table(result))


@app.command()
def report(
    config: Path = ConfigOpt,
    workbook: Path = WorkbookOpt,
    churn_file: Path = ChurnOpt,
    reactivations_file: Path = ReactivationsOpt,
    period: DatePeriod = PeriodOpt,
    start: datetime = StartOpt,
    end: datetime = EndOpt,
    verbose: bool = VerboseOpt,
) -> None:
    """Print the churn -> reactivation cross analysis."""
    _setup_logging(verbose)
    _, result = _run(
        config, workbook, churn_file, reactivations_file, None, period, start, end
    )
    cross = result.cross
    console.print(
        f"[bold]Cross analysis[/bold] ({result.date_range[0]} to {result.date_range[1]}): "
        f"{cross.reactivated_from_churns} of {cross.total_churns} churned clients returned, "
        f"rate {cross.reactivation_rate:.1f}%, avg {cross.average_days_to_reactivation} days"
    )

    table = Table(title="Matched Clients")
    for col in ("Client", "Churned", "Reactivated", "Days", "Churn Category", "Reason", "MRR"):
        table.add_column(col)
    for pair in cross.matched_clients:
        table.add_row(
            pair.client_name,
            pair.churn_date,
            pair.reactivation_date,
            str(pair.elapsed_days),
            pair.churn_category,
            pair.reactivation_reason,
            f"${pair.mrr_recovered:,.0f}",
        )
    console.print(table)
