"""Churn-sheet aggregates: categories, feedback themes, competitors, monthly trends."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from churn_analytics.analyses.base import (
    CategoryCount,
    CompetitorData,
    MonthlyCategoryBreakdown,
    MonthlyTrendData,
    ReactivationCorrelation,
    count_categories,
    safe_ratio,
)
from churn_analytics.analyses.metrics import ReactivationMetrics
from churn_analytics.dates import month_key, try_parse_date
from churn_analytics.records import UNKNOWN, ChurnRecord, ReactivationRecord

logger = logging.getLogger(__name__)

OTHER_FEEDBACK = "Other Feedback"


@dataclass(frozen=True)
class FeedbackTheme:
    """Feedback bucket. Matches when ANY keyword is a substring of the lowercased text."""

    keywords: tuple[str, ...]
    category: str


# Ordered tuple -- first match wins.
FEEDBACK_THEMES: tuple[FeedbackTheme, ...] = (
    FeedbackTheme(("payment", "billing", "invoice", "charge"), "Payment/Billing Issues"),
    FeedbackTheme(("communication", "response", "support", "contact"), "Communication Problems"),
    FeedbackTheme(("fee", "price", "cost", "expensive"), "Pricing Concerns"),
    FeedbackTheme(
        ("reliability", "downtime", "error", "bug", "issue"), "Reliability/Technical Issues"
    ),
    FeedbackTheme(("feature", "functionality", "missing", "need"), "Feature Gaps"),
    FeedbackTheme(("competitor", "alternative", "switched"), "Competitor"),
    FeedbackTheme(("slow", "late", "delay"), "Speed/Performance"),
    FeedbackTheme(("contractor", "worker", "employee"), "Contractor Management"),
)


def classify_feedback(feedback: str | None) -> str | None:
    """Theme for one feedback string; None when there is no feedback text."""
    if not feedback or not feedback.strip():
        return None
    text = feedback.lower()
    for theme in FEEDBACK_THEMES:
        if any(kw in text for kw in theme.keywords):
            return theme.category
    return OTHER_FEEDBACK


@dataclass(frozen=True)
class ChurnAnalysis:
    """Everything the dashboard shows about one set of churn records."""

    total_churns: int
    total_mrr_lost: float
    average_mrr_per_churn: float
    average_reactivation_days: float
    category_distribution: list[CategoryCount] = field(default_factory=list)
    top_churn_categories: list[CategoryCount] = field(default_factory=list)
    top_service_categories: list[CategoryCount] = field(default_factory=list)
    client_feedback_categories: list[CategoryCount] = field(default_factory=list)
    competitor_analysis: list[CompetitorData] = field(default_factory=list)
    reactivation_by_churn_category: list[ReactivationCorrelation] = field(default_factory=list)
    monthly_trend: list[MonthlyTrendData] = field(default_factory=list)
    monthly_churn_by_category: list[MonthlyCategoryBreakdown] = field(default_factory=list)
    trend_categories: list[str] = field(default_factory=list)

    @property
    def feedback_count(self) -> int:
        return sum(c.count for c in self.client_feedback_categories)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalChurns": self.total_churns,
            "totalMRRLost": self.total_mrr_lost,
            "averageMRRPerChurn": self.average_mrr_per_churn,
            "averageReactivationDays": self.average_reactivation_days,
            "categoryDistribution": [c.to_dict() for c in self.category_distribution],
            "topChurnCategories": [c.to_dict() for c in self.top_churn_categories],
            "topServiceCategories": [c.to_dict() for c in self.top_service_categories],
            "clientFeedbackCategories": [c.to_dict() for c in self.client_feedback_categories],
            "competitorAnalysis": [c.to_dict() for c in self.competitor_analysis],
            "reactivationByChurnCategory": [
                c.to_dict() for c in self.reactivation_by_churn_category
            ],
            "monthlyTrend": [m.to_dict() for m in self.monthly_trend],
            "monthlyChurnByCategory": [m.to_dict() for m in self.monthly_churn_by_category],
            "trendCategories": list(self.trend_categories),
        }


def _records_frame(records: Sequence[ChurnRecord]) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "churn_category": [r.churn_category for r in records],
            "service_category": [r.service_category or UNKNOWN for r in records],
            "competitor": [r.competitor or None for r in records],
            "mrr": [r.mrr for r in records],
            "price": [r.price for r in records],
            "month": [month_key(r.churn_instant) if r.churn_instant else None for r in records],
        },
        columns=["churn_category", "service_category", "competitor", "mrr", "price", "month"],
    )
    frame["mrr"] = pd.to_numeric(frame["mrr"], errors="coerce")
    frame["price"] = pd.to_numeric(frame["price"], errors="coerce")
    return frame


def _competitor_analysis(frame: pd.DataFrame) -> list[CompetitorData]:
    named = frame[frame["competitor"].notna()]
    if named.empty:
        return []
    grouped = (
        named.groupby("competitor", sort=False)
        .agg(
            count=("mrr", "size"),
            total_mrr=("mrr", "sum"),
            total_price=("price", "sum"),
        )
        .sort_values("count", ascending=False, kind="stable")
    )
    return [
        CompetitorData(
            competitor=str(name),
            count=int(row["count"]),
            total_mrr=round(float(row["total_mrr"]), 2),
            average_price=safe_ratio(float(row["total_price"]), int(row["count"])),
        )
        for name, row in grouped.iterrows()
    ]


def _monthly_trend(
    frame: pd.DataFrame, reactivations: Iterable[ReactivationRecord] | None
) -> list[MonthlyTrendData]:
    churns = frame["month"].dropna().value_counts().to_dict()
    returns: dict[str, int] = {}
    for record in reactivations or ():
        instant = try_parse_date(record.reactivation_date)
        if instant is not None:
            key = month_key(instant)
            returns[key] = returns.get(key, 0) + 1
    # Zero-padded YYYY-MM keys sort chronologically as strings.
    months = sorted(set(churns) | set(returns))
    return [
        MonthlyTrendData(
            month=month, churns=int(churns.get(month, 0)), reactivations=returns.get(month, 0)
        )
        for month in months
    ]


def _monthly_by_category(
    frame: pd.DataFrame, top_categories: list[str]
) -> list[MonthlyCategoryBreakdown]:
    dated = frame[frame["month"].notna()]
    if dated.empty:
        return []
    counts = dated.groupby(["month", "churn_category"]).size()
    breakdowns: list[MonthlyCategoryBreakdown] = []
    for month in sorted(dated["month"].unique()):
        by_category = counts.loc[month].to_dict()
        top = {cat: int(by_category.get(cat, 0)) for cat in top_categories}
        other = sum(int(n) for cat, n in by_category.items() if cat not in top)
        breakdowns.append(MonthlyCategoryBreakdown(month=str(month), counts=top, other=other))
    return breakdowns


def analyze_churn(
    records: Iterable[ChurnRecord],
    reactivations: Iterable[ReactivationRecord] | None = None,
    metrics: ReactivationMetrics | None = None,
    correlations: list[ReactivationCorrelation] | None = None,
    top_n: int = 10,
    trend_categories: int = 5,
) -> ChurnAnalysis:
    """Aggregate churn records into a ChurnAnalysis.

    Records without a parseable churn date still count toward totals,
    categories and competitors; they are only left out of monthly buckets.
    Reactivation latency and per-category correlation are not computed here:
    pass the outputs of ``calculate_reactivation_metrics`` and
    ``correlate_by_category`` to include them.
    """
    records = list(records)
    total = len(records)
    frame = _records_frame(records)

    undated = int(frame["month"].isna().sum())
    if undated:
        logger.debug("%d churn records without a usable churn date excluded from trends", undated)

    total_mrr = round(float(frame["mrr"].sum()), 2) if total else 0.0
    distribution = count_categories(frame["churn_category"])
    top_names = [c.category for c in distribution[:trend_categories]]
    themes = [t for t in (classify_feedback(r.feedback) for r in records) if t is not None]

    analysis = ChurnAnalysis(
        total_churns=total,
        total_mrr_lost=total_mrr,
        average_mrr_per_churn=safe_ratio(total_mrr, total),
        average_reactivation_days=metrics.average_days_to_reactivation if metrics else 0,
        category_distribution=distribution,
        top_churn_categories=distribution[:top_n],
        top_service_categories=count_categories(frame["service_category"], top_n=top_n),
        client_feedback_categories=count_categories(themes),
        competitor_analysis=_competitor_analysis(frame),
        reactivation_by_churn_category=list(correlations or []),
        monthly_trend=_monthly_trend(frame, reactivations),
        monthly_churn_by_category=_monthly_by_category(frame, top_names),
        trend_categories=top_names,
    )
    logger.info(
        "Churn analysis: %d records, %d categories, %d competitors, %d months",
        total,
        len(distribution),
        len(analysis.competitor_analysis),
        len(analysis.monthly_trend),
    )
    return analysis
