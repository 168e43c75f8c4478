"""Typed churn and reactivation records."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from churn_analytics.dates import to_iso, try_parse_date

AVERAGE_MONTH_DAYS = 30.44

UNCATEGORIZED = "Uncategorized"
UNKNOWN = "Unknown"


@dataclass(frozen=True)
class ChurnRecord:
    """One customer's churn event.

    ``churn_instant`` and ``months_before_churn`` are derived on construction
    from the raw date strings.
    """

    id: str
    client_name: str = UNKNOWN
    churn_category: str = UNCATEGORIZED
    id_synthesized: bool = False
    churn_date: str | None = None
    deactivation_date: str | None = None
    estimated_churn_date: str | None = None
    created_date: str | None = None
    service_category: str = UNKNOWN
    competitor: str | None = None
    mrr: float | None = None
    price: float | None = None
    feedback: str | None = None
    churn_instant: datetime | None = field(default=None, init=False)
    months_before_churn: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        instant = try_parse_date(self.primary_churn_date)
        object.__setattr__(self, "churn_instant", instant)
        months = _lifetime_months(self.created_date, instant)
        object.__setattr__(self, "months_before_churn", months)

    @property
    def primary_churn_date(self) -> str | None:
        """Observed deactivation first, then the recorded churn date, then the estimate."""
        for value in (self.deactivation_date, self.churn_date, self.estimated_churn_date):
            if value:
                return value
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "clientName": self.client_name,
            "churnDate": to_iso(self.churn_instant),
            "churnCategory": self.churn_category,
            "serviceCategory": self.service_category,
            "competitor": self.competitor,
            "mrr": self.mrr,
            "price": self.price,
            "feedback": self.feedback,
            "monthsBeforeChurn": self.months_before_churn,
        }


@dataclass(frozen=True)
class ReactivationRecord:
    """One customer's return event.

    ``churn_date`` is the churn instant as written on the reactivation sheet;
    it does not have to agree with the churn sheet.
    """

    id: str
    account_name: str = UNKNOWN
    id_synthesized: bool = False
    platform_client_id: str | None = None
    churn_date: str | None = None
    reactivation_date: str | None = None
    mrr: float | None = None
    reactivation_reason: str = UNKNOWN
    customer_success_path: str = UNKNOWN

    @property
    def match_ids(self) -> tuple[str, ...]:
        """Identifiers usable as churn-record lookup keys, in priority order."""
        ids: list[str] = []
        if self.platform_client_id:
            ids.append(self.platform_client_id)
        if not self.id_synthesized and self.id and self.id not in ids:
            ids.append(self.id)
        return tuple(ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "platformClientId": self.platform_client_id,
            "accountName": self.account_name,
            "churnDate": self.churn_date,
            "reactivationDate": self.reactivation_date,
            "mrr": self.mrr,
            "reactivationReason": self.reactivation_reason,
            "customerSuccessPath": self.customer_success_path,
        }


def _lifetime_months(created_date: str | None, churn_instant: datetime | None) -> int | None:
    if churn_instant is None:
        return None
    created = try_parse_date(created_date)
    if created is None:
        return None
    days = (churn_instant - created).total_seconds() / 86400
    if days < 0:
        return None
    return math.floor(days / AVERAGE_MONTH_DAYS)
