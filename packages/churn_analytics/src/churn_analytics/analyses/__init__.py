"""Churn and reactivation analyses."""

from __future__ import annotations

from churn_analytics.analyses.base import (
    CategoryCount,
    CompetitorData,
    MonthlyCategoryBreakdown,
    MonthlyTrendData,
    ReactivationCorrelation,
    count_categories,
    safe_percentage,
    safe_ratio,
)
from churn_analytics.analyses.churn import ChurnAnalysis, analyze_churn, classify_feedback
from churn_analytics.analyses.cross import (
    ChurnSummary,
    CrossAnalysis,
    analyze_cross,
    summarize_churn,
)
from churn_analytics.analyses.matching import (
    MatchedPair,
    correlate_by_category,
    match_reactivations,
    normalize_name,
)
from churn_analytics.analyses.metrics import ReactivationMetrics, calculate_reactivation_metrics
from churn_analytics.analyses.reactivation import ReactivationAnalysis, analyze_reactivations

__all__ = [
    "CategoryCount",
    "ChurnAnalysis",
    "ChurnSummary",
    "CompetitorData",
    "CrossAnalysis",
    "MatchedPair",
    "MonthlyCategoryBreakdown",
    "MonthlyTrendData",
    "ReactivationAnalysis",
    "ReactivationCorrelation",
    "ReactivationMetrics",
    "analyze_churn",
    "analyze_cross",
    "analyze_reactivations",
    "calculate_reactivation_metrics",
    "classify_feedback",
    "correlate_by_category",
    "count_categories",
    "match_reactivations",
    "normalize_name",
    "safe_percentage",
    "safe_ratio",
    "summarize_churn",
]
