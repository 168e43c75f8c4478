"""Date-period filtering of churn and reactivation records.

Filtering is the permissive call site: dates the strict formats reject are
given one more chance through free-form parsing before a record is dropped.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import StrEnum

from churn_analytics.dates import try_parse_date
from churn_analytics.records import ChurnRecord, ReactivationRecord

_ONE_DAY = timedelta(days=1)
_TICK = timedelta(microseconds=1)


class DatePeriod(StrEnum):
    ALL_TIME = "all-time"
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this-week"
    LAST_WEEK = "last-week"
    THIS_MONTH = "this-month"
    LAST_MONTH = "last-month"
    LAST_30_DAYS = "last-30-days"
    LAST_90_DAYS = "last-90-days"
    LAST_180_DAYS = "last-180-days"
    THIS_YEAR = "this-year"
    CUSTOM_RANGE = "custom-range"


def get_date_range(
    period: DatePeriod | str, now: datetime | None = None
) -> tuple[datetime, datetime] | None:
    """Inclusive ``(start, end)`` for *period*, or None for no filtering.

    Weeks start on Sunday. ``custom-range`` returns None; callers pass explicit
    bounds to the filter functions instead.
    """
    period = DatePeriod(period)
    now = now or datetime.now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period == DatePeriod.TODAY:
        return today, today + _ONE_DAY - _TICK
    if period == DatePeriod.YESTERDAY:
        yesterday = today - _ONE_DAY
        return yesterday, today - _TICK
    if period in (DatePeriod.THIS_WEEK, DatePeriod.LAST_WEEK):
        days_since_sunday = (today.weekday() + 1) % 7
        week_start = today - timedelta(days=days_since_sunday)
        if period == DatePeriod.THIS_WEEK:
            return week_start, now
        return week_start - timedelta(days=7), week_start - _TICK
    if period == DatePeriod.THIS_MONTH:
        return today.replace(day=1), now
    if period == DatePeriod.LAST_MONTH:
        month_start = today.replace(day=1)
        last_month_end = month_start - _TICK
        return last_month_end.replace(day=1, hour=0, minute=0, second=0, microsecond=0), (
            last_month_end
        )
    if period == DatePeriod.LAST_30_DAYS:
        return today - timedelta(days=30), now
    if period == DatePeriod.LAST_90_DAYS:
        return today - timedelta(days=90), now
    if period == DatePeriod.LAST_180_DAYS:
        return today - timedelta(days=180), now
    if period == DatePeriod.THIS_YEAR:
        return today.replace(month=1, day=1), now
    return None


def _within(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def filter_churns(
    records: Iterable[ChurnRecord], start: datetime, end: datetime
) -> list[ChurnRecord]:
    """Churn records whose primary churn date falls in ``[start, end]``."""
    return [r for r in records if _within(_churn_instant(r), start, end)]


def _churn_instant(record: ChurnRecord) -> datetime | None:
    if record.churn_instant is not None:
        return record.churn_instant
    return try_parse_date(record.primary_churn_date, permissive=True)


def filter_reactivations(
    records: Iterable[ReactivationRecord], start: datetime, end: datetime
) -> list[ReactivationRecord]:
    """Reactivation records whose reactivation date falls in ``[start, end]``."""
    return [
        r
        for r in records
        if _within(try_parse_date(r.reactivation_date, permissive=True), start, end)
    ]


def filter_by_period(
    churns: Iterable[ChurnRecord],
    reactivations: Iterable[ReactivationRecord],
    period: DatePeriod | str,
    now: datetime | None = None,
) -> tuple[list[ChurnRecord], list[ReactivationRecord]]:
    """Apply one named period to both record sets."""
    bounds = get_date_range(period, now)
    if bounds is None:
        return list(churns), list(reactivations)
    start, end = bounds
    return filter_churns(churns, start, end), filter_reactivations(reactivations, start, end)
