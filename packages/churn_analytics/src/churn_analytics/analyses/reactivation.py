"""Reactivation-sheet aggregates: reasons, customer-success paths, monthly recoveries."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from churn_analytics.analyses.base import CategoryCount, count_categories, safe_ratio
from churn_analytics.dates import month_key, try_parse_date
from churn_analytics.diagnostics import Diagnostics
from churn_analytics.records import ReactivationRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyReactivationData:
    month: str
    count: int
    mrr: float

    def to_dict(self) -> dict[str, Any]:
        return {"month": self.month, "count": self.count, "mrr": self.mrr}


@dataclass(frozen=True)
class ReactivationAnalysis:
    total_reactivations: int
    total_mrr_recovered: float
    average_mrr: float
    top_reactivation_reasons: list[CategoryCount] = field(default_factory=list)
    reactivations_by_cs_path: list[CategoryCount] = field(default_factory=list)
    monthly_reactivations: list[MonthlyReactivationData] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalReactivations": self.total_reactivations,
            "totalMRRRecovered": self.total_mrr_recovered,
            "averageMRR": self.average_mrr,
            "topReactivationReasons": [c.to_dict() for c in self.top_reactivation_reasons],
            "reactivationsByCSPath": [c.to_dict() for c in self.reactivations_by_cs_path],
            "monthlyReactivations": [m.to_dict() for m in self.monthly_reactivations],
        }


def analyze_reactivations(
    records: Iterable[ReactivationRecord],
    top_n: int = 10,
    diagnostics: Diagnostics | None = None,
) -> ReactivationAnalysis:
    """Aggregate reactivation records. Absent MRR counts as 0 in sums."""
    records = list(records)
    total = len(records)
    frame = pd.DataFrame(
        {
            "reason": [r.reactivation_reason for r in records],
            "cs_path": [r.customer_success_path for r in records],
            "mrr": [r.mrr or 0.0 for r in records],
            "month": [_month_of(r.reactivation_date, diagnostics) for r in records],
        },
        columns=["reason", "cs_path", "mrr", "month"],
    )
    frame["mrr"] = pd.to_numeric(frame["mrr"], errors="coerce").fillna(0.0)

    total_mrr = round(float(frame["mrr"].sum()), 2) if total else 0.0

    monthly: list[MonthlyReactivationData] = []
    dated = frame[frame["month"].notna()]
    if not dated.empty:
        grouped = dated.groupby("month").agg(count=("mrr", "size"), mrr=("mrr", "sum"))
        monthly = [
            MonthlyReactivationData(
                month=str(month), count=int(row["count"]), mrr=round(float(row["mrr"]), 2)
            )
            for month, row in grouped.sort_index().iterrows()
        ]

    logger.info("Reactivation analysis: %d records, $%s recovered", total, f"{total_mrr:,.2f}")
    return ReactivationAnalysis(
        total_reactivations=total,
        total_mrr_recovered=total_mrr,
        average_mrr=safe_ratio(total_mrr, total),
        top_reactivation_reasons=count_categories(frame["reason"], top_n=top_n),
        reactivations_by_cs_path=count_categories(frame["cs_path"]),
        monthly_reactivations=monthly,
    )


def _month_of(value: str | None, diagnostics: Diagnostics | None) -> str | None:
    instant = try_parse_date(value, diagnostics, "reactivation_date")
    return month_key(instant) if instant else None
