"""Cross analysis of churn and reactivation sheets, plus the headline summary."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from churn_analytics.analyses.base import CategoryCount, count_categories
from churn_analytics.analyses.churn import ChurnAnalysis
from churn_analytics.analyses.matching import MatchedPair, match_reactivations
from churn_analytics.analyses.metrics import ReactivationMetrics, calculate_reactivation_metrics
from churn_analytics.diagnostics import Diagnostics, ensure
from churn_analytics.records import ChurnRecord, ReactivationRecord

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class CrossAnalysis:
    total_churns: int
    total_reactivations: int
    reactivated_from_churns: int
    reactivation_rate: float
    average_days_to_reactivation: int
    matched_clients: list[MatchedPair] = field(default_factory=list)
    churns_by_category: list[CategoryCount] = field(default_factory=list)
    reactivations_by_churn_category: list[CategoryCount] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalChurns": self.total_churns,
            "totalReactivations": self.total_reactivations,
            "reactivatedFromChurns": self.reactivated_from_churns,
            "reactivationRate": self.reactivation_rate,
            "averageDaysToReactivation": self.average_days_to_reactivation,
            "matchedClients": [p.to_dict() for p in self.matched_clients],
            "churnsByCategory": [c.to_dict() for c in self.churns_by_category],
            "reactivationsByChurnCategory": [
                c.to_dict() for c in self.reactivations_by_churn_category
            ],
        }


@dataclass(frozen=True)
class ChurnSummary:
    total_churns: int
    average_reactivation_days: int
    top_churn_category: str
    top_churn_category_count: int
    top_competitor: str
    top_competitor_mrr: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalChurns": self.total_churns,
            "averageReactivationDays": self.average_reactivation_days,
            "topChurnCategory": self.top_churn_category,
            "topChurnCategoryCount": self.top_churn_category_count,
            "topCompetitor": self.top_competitor,
            "topCompetitorMRR": self.top_competitor_mrr,
        }


def analyze_cross(
    churns: Iterable[ChurnRecord],
    reactivations: Iterable[ReactivationRecord],
    pairs: list[MatchedPair] | None = None,
    metrics: ReactivationMetrics | None = None,
    top_n: int = 10,
    diagnostics: Diagnostics | None = None,
) -> CrossAnalysis:
    """Which churned customers came back, how fast, and from which churn reasons.

    Rate and average latency come from the reactivation metrics calculator;
    *pairs* and *metrics* are computed here when not supplied.
    """
    diag = ensure(diagnostics)
    churns = list(churns)
    reactivations = list(reactivations)
    if pairs is None:
        pairs = match_reactivations(churns, reactivations, diag)
    if metrics is None:
        metrics = calculate_reactivation_metrics(reactivations, len(churns), diag)

    returned_ids = {p.churn_record_id for p in pairs if p.matched}
    return CrossAnalysis(
        total_churns=len(churns),
        total_reactivations=len(reactivations),
        reactivated_from_churns=len(returned_ids),
        reactivation_rate=metrics.reactivation_rate,
        average_days_to_reactivation=metrics.average_days_to_reactivation,
        matched_clients=sorted(pairs, key=lambda p: p.elapsed_days),
        churns_by_category=count_categories((c.churn_category for c in churns), top_n=top_n),
        reactivations_by_churn_category=count_categories(p.churn_category for p in pairs),
    )


def summarize_churn(analysis: ChurnAnalysis, metrics: ReactivationMetrics) -> ChurnSummary:
    """Headline numbers for the dashboard cards."""
    top_category = analysis.top_churn_categories[0] if analysis.top_churn_categories else None
    top_competitor = analysis.competitor_analysis[0] if analysis.competitor_analysis else None
    return ChurnSummary(
        total_churns=analysis.total_churns,
        average_reactivation_days=metrics.average_days_to_reactivation,
        top_churn_category=top_category.category if top_category else NOT_AVAILABLE,
        top_churn_category_count=top_category.count if top_category else 0,
        top_competitor=top_competitor.competitor if top_competitor else NOT_AVAILABLE,
        top_competitor_mrr=top_competitor.total_mrr if top_competitor else 0.0,
    )
