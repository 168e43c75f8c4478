"""Aggregate result types and zero-safe helpers shared by all analyses."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

OTHER = "Other"


def safe_percentage(part: float, total: float, decimals: int | None = 2) -> float:
    """Return part/total * 100 without ZeroDivisionError. Returns 0-100.

    ``decimals=None`` leaves the value unrounded.
    """
    if total == 0 or pd.isna(total):
        return 0.0
    pct = float(part / total) * 100
    return pct if decimals is None else round(pct, decimals)


def safe_ratio(numerator: float, denominator: float, decimals: int = 2) -> float:
    """Compute ratio with zero-division and NaN guard."""
    if denominator == 0 or pd.isna(denominator):
        return 0.0
    return round(numerator / denominator, decimals)


@dataclass(frozen=True)
class CategoryCount:
    category: str
    count: int
    percentage: float

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "count": self.count, "percentage": self.percentage}


@dataclass(frozen=True)
class CompetitorData:
    competitor: str
    count: int
    total_mrr: float
    average_price: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "competitor": self.competitor,
            "count": self.count,
            "totalMRR": self.total_mrr,
            "averagePrice": self.average_price,
        }


@dataclass(frozen=True)
class ReactivationCorrelation:
    churn_category: str
    reactivation_rate: float
    average_days_to_reactivation: float
    total_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "churnCategory": self.churn_category,
            "reactivationRate": self.reactivation_rate,
            "averageDaysToReactivation": self.average_days_to_reactivation,
            "totalCount": self.total_count,
        }


@dataclass(frozen=True)
class MonthlyTrendData:
    month: str
    churns: int
    reactivations: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"month": self.month, "churns": self.churns, "reactivations": self.reactivations}


@dataclass(frozen=True)
class MonthlyCategoryBreakdown:
    """Churn counts for one month across the global top categories.

    ``counts`` holds one entry per top category (in rank order, zero-filled);
    everything else is folded into ``other``.
    """

    month: str
    counts: dict[str, int] = field(default_factory=dict)
    other: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values()) + self.other

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"month": self.month, **self.counts}
        if self.other > 0:
            data[OTHER] = self.other
        return data


def count_categories(
    values: Iterable[str],
    top_n: int | None = None,
    total: int | None = None,
) -> list[CategoryCount]:
    """Count occurrences, sorted by count descending.

    Ties keep first-appearance order. Percentages use *total* when given,
    otherwise the number of values, and are left unrounded so a full
    distribution sums to 100.
    """
    series = pd.Series(list(values), dtype="object")
    if series.empty:
        return []
    counts = series.groupby(series, sort=False).size()
    counts = counts.sort_values(ascending=False, kind="stable")
    if top_n is not None:
        counts = counts.head(top_n)
    denominator = len(series) if total is None else total
    return [
        CategoryCount(
            category=str(cat),
            count=int(n),
            percentage=safe_percentage(int(n), denominator, decimals=None),
        )
        for cat, n in counts.items()
    ]
