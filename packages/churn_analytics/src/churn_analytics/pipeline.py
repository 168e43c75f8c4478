"""Pipeline orchestrator shared by the CLI and run_client()."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from churn_analytics.analyses import (
    ChurnAnalysis,
    ChurnSummary,
    CrossAnalysis,
    MatchedPair,
    ReactivationAnalysis,
    ReactivationMetrics,
    analyze_churn,
    analyze_cross,
    analyze_reactivations,
    calculate_reactivation_metrics,
    correlate_by_category,
    match_reactivations,
    summarize_churn,
)
from churn_analytics.data_source import RowSource, SpreadsheetSource
from churn_analytics.diagnostics import Diagnostics, ensure
from churn_analytics.exceptions import ChurnAnalyticsError, UpstreamFetchError
from churn_analytics.filters import (
    DatePeriod,
    filter_by_period,
    filter_churns,
    filter_reactivations,
)
from churn_analytics.narrative import (
    TextGenerator,
    build_insights_payload,
    generate_churn_insights,
)
from churn_analytics.normalize import normalize_churn_rows, normalize_reactivation_rows
from churn_analytics.records import ChurnRecord, ReactivationRecord
from churn_analytics.settings import Settings

logger = logging.getLogger(__name__)

ALL_TIME = "All time"


@dataclass
class AnalyticsResult:
    """Container for one request's worth of analytics."""

    churns: list[ChurnRecord]
    reactivations: list[ReactivationRecord]
    churn_analysis: ChurnAnalysis
    reactivation_analysis: ReactivationAnalysis
    metrics: ReactivationMetrics
    pairs: list[MatchedPair]
    cross: CrossAnalysis
    summary: ChurnSummary
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    date_range: tuple[str, str] = (ALL_TIME, ALL_TIME)
    insights: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "dateRange": {"start": self.date_range[0], "end": self.date_range[1]},
            "summary": self.summary.to_dict(),
            "churnAnalysis": self.churn_analysis.to_dict(),
            "reactivationAnalysis": self.reactivation_analysis.to_dict(),
            "reactivationMetrics": self.metrics.to_dict(),
            "crossAnalysis": self.cross.to_dict(),
            "insightsPayload": build_insights_payload(self.churn_analysis),
            "insights": self.insights,
            "diagnostics": self.diagnostics.summary(),
        }


def fetch_records(
    source: RowSource, diagnostics: Diagnostics | None = None
) -> tuple[list[ChurnRecord], list[ReactivationRecord]]:
    """Fetch both sheets concurrently and normalize them.

    Any fetch failure aborts the request; no partial result is returned.
    """
    diag = ensure(diagnostics)
    with ThreadPoolExecutor(max_workers=2) as pool:
        churn_future = pool.submit(source.fetch, "churn")
        reactivation_future = pool.submit(source.fetch, "reactivation")
        try:
            churn_sheet = churn_future.result()
            reactivation_sheet = reactivation_future.result()
        except ChurnAnalyticsError:
            raise
        except Exception as e:
            raise UpstreamFetchError("data source", e) from e

    churns = normalize_churn_rows(churn_sheet.rows, churn_sheet.column_map, diag)
    reactivations = normalize_reactivation_rows(
        reactivation_sheet.rows, reactivation_sheet.column_map, diag
    )
    return churns, reactivations


def analyze_records(
    churns: list[ChurnRecord],
    reactivations: list[ReactivationRecord],
    top_n: int = 10,
    trend_categories: int = 5,
    diagnostics: Diagnostics | None = None,
    generator: TextGenerator | None = None,
) -> AnalyticsResult:
    """Compute every aggregate from already-normalized records.

    With a *generator*, the churn narrative is requested on a worker thread
    while the remaining aggregates are computed. A service failure raises
    UpstreamFetchError and no result is returned.
    """
    diag = ensure(diagnostics)
    metrics = calculate_reactivation_metrics(reactivations, len(churns), diag)
    pairs = match_reactivations(churns, reactivations, diag)
    correlations = correlate_by_category(churns, pairs)

    churn_analysis = analyze_churn(
        churns,
        reactivations=reactivations,
        metrics=metrics,
        correlations=correlations,
        top_n=top_n,
        trend_categories=trend_categories,
    )
    if generator is None:
        return _assemble(churns, reactivations, churn_analysis, metrics, pairs, top_n, diag)

    with ThreadPoolExecutor(max_workers=1) as pool:
        insights_future = pool.submit(generate_churn_insights, generator, churn_analysis)
        result = _assemble(churns, reactivations, churn_analysis, metrics, pairs, top_n, diag)
        result.insights = insights_future.result()
    logger.info("Narrative insights: %d characters", len(result.insights))
    return result


def _assemble(
    churns: list[ChurnRecord],
    reactivations: list[ReactivationRecord],
    churn_analysis: ChurnAnalysis,
    metrics: ReactivationMetrics,
    pairs: list[MatchedPair],
    top_n: int,
    diag: Diagnostics,
) -> AnalyticsResult:
    return AnalyticsResult(
        churns=churns,
        reactivations=reactivations,
        churn_analysis=churn_analysis,
        reactivation_analysis=analyze_reactivations(reactivations, top_n=top_n, diagnostics=diag),
        metrics=metrics,
        pairs=pairs,
        cross=analyze_cross(churns, reactivations, pairs=pairs, metrics=metrics, top_n=top_n),
        summary=summarize_churn(churn_analysis, metrics),
        diagnostics=diag,
    )


def run_pipeline(
    settings: Settings,
    source: RowSource | None = None,
    period: DatePeriod | str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    on_progress: Callable[[int, int, str], None] | None = None,
    generator: TextGenerator | None = None,
) -> AnalyticsResult:
    """Execute the full pipeline: fetch -> normalize -> filter -> analyze.

    Args:
        settings: Application configuration.
        source: Row source; defaults to a SpreadsheetSource over *settings*.
        period: Named date period applied to both record sets.
        start, end: Explicit inclusive bounds; take precedence over *period*.
        on_progress: Optional callback(step, total, message) for UI progress.
        generator: Optional narrative service; its text lands on ``insights``.
    """
    diag = Diagnostics()

    # Step 1: Fetch + normalize
    if on_progress:
        on_progress(0, 3, "Loading sheets...")
    churns, reactivations = fetch_records(source or SpreadsheetSource(settings), diag)

    # Step 2: Filter
    if on_progress:
        on_progress(1, 3, "Filtering records...")
    date_range = (ALL_TIME, ALL_TIME)
    if start is not None and end is not None:
        churns = filter_churns(churns, start, end)
        reactivations = filter_reactivations(reactivations, start, end)
        date_range = (start.date().isoformat(), end.date().isoformat())
    elif period is not None and DatePeriod(period) != DatePeriod.ALL_TIME:
        churns, reactivations = filter_by_period(churns, reactivations, period)
        date_range = (DatePeriod(period).value, DatePeriod(period).value)
    logger.info("%d churn / %d reactivation records in range", len(churns), len(reactivations))

    # Step 3: Analyze
    if on_progress:
        on_progress(2, 3, "Running analyses...")
    result = analyze_records(
        churns,
        reactivations,
        top_n=settings.top_n_categories,
        trend_categories=settings.trend_categories,
        diagnostics=diag,
        generator=generator,
    )
    result.date_range = date_range
    return result


def export_outputs(result: AnalyticsResult, output_dir: Path) -> list[Path]:
    """Write the analytics report as JSON. Returns list of generated file paths."""
    output_dir.mkdir(parents=True, exist_ok=True)
    date_str = datetime.now().strftime("%Y%m%d")
    path = output_dir / f"churn_analytics_{date_str}.json"
    path.write_text(json.dumps(result.to_dict(), indent=2, default=str), encoding="utf-8")
    logger.info("JSON report: %s", path)
    return [path]
