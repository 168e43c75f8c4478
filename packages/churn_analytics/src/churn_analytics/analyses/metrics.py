"""Reactivation latency and rate -- the one calculation every view reports.

Churn analysis, the churn summary, the cross analysis and the CLI all read
these numbers from ``calculate_reactivation_metrics`` so that two views never
disagree about how long customers take to come back.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from churn_analytics.dates import elapsed_days, parse_date
from churn_analytics.diagnostics import Diagnostics, ensure
from churn_analytics.exceptions import DateParseError
from churn_analytics.records import ReactivationRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReactivationMetrics:
    total_reactivations: int
    average_days_to_reactivation: int
    reactivation_rate: float
    valid_count: int
    parse_error_count: int
    skipped_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalReactivations": self.total_reactivations,
            "averageDaysToReactivation": self.average_days_to_reactivation,
            "reactivationRate": self.reactivation_rate,
            "validCount": self.valid_count,
            "parseErrorCount": self.parse_error_count,
            "skippedCount": self.skipped_count,
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_reactivation_metrics(
    reactivations: Iterable[ReactivationRecord],
    total_churn_count: int,
    diagnostics: Diagnostics | None = None,
) -> ReactivationMetrics:
    """Average days to reactivation and reactivation rate.

    Uses the churn date written on each reactivation record. Records missing
    either date are ignored. Unparsable dates count as parse errors; zero or
    negative gaps count as skips. The two counters are independent.
    """
    diag = ensure(diagnostics)
    records = list(reactivations)
    gaps: list[int] = []
    parse_errors = 0
    skipped = 0

    for record in records:
        if not record.churn_date or not record.reactivation_date:
            continue
        try:
            churned = parse_date(record.churn_date)
            reactivated = parse_date(record.reactivation_date)
        except DateParseError as e:
            parse_errors += 1
            diag.date_parse_error(e.value, f"reactivation {record.id}")
            continue

        days = elapsed_days(churned, reactivated)
        if days > 0:
            gaps.append(days)
        else:
            skipped += 1
            diag.skip(
                "Reactivation %s: reactivated %d days after churn (%s -> %s), excluded",
                record.id,
                days,
                record.churn_date,
                record.reactivation_date,
            )

    valid = len(gaps)
    average = _round_half_up(sum(gaps) / valid) if valid else 0
    rate = (valid / total_churn_count) * 100 if total_churn_count > 0 else 0.0

    logger.info(
        "Reactivation metrics: %d records, %d valid, avg %d days, rate %.1f%%, "
        "%d parse errors, %d skipped",
        len(records),
        valid,
        average,
        rate,
        parse_errors,
        skipped,
    )
    return ReactivationMetrics(
        total_reactivations=len(records),
        average_days_to_reactivation=average,
        reactivation_rate=rate,
        valid_count=valid,
        parse_error_count=parse_errors,
        skipped_count=skipped,
    )
