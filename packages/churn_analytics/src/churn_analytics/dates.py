"""Flexible date parsing for spreadsheet date cells.

Formats are tried in a fixed order and the first valid result wins:

1. ISO 8601 -- ``YYYY-MM-DD`` with optional ``THH:MM[:SS]`` and offset.
2. ``M/D/YYYY`` -- always read month-first. ``3/4/2024`` is March 4th even
   for day-first locales; aggregates built on this data assume that order.
3. ``D-M-YYYY`` -- dash-delimited strings that do not start with a year.
4. Permissive fallback (opt-in) -- ``dateutil`` free-form parsing.

Offsets are converted to UTC and dropped so every returned instant is naive
and comparable with every other.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from dateutil import parser as dateutil_parser

from churn_analytics.diagnostics import Diagnostics
from churn_analytics.exceptions import DateParseError

_ISO_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
_LEADING_YEAR_RE = re.compile(r"^\d{4}")


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _parse_iso(text: str) -> datetime | None:
    if not _ISO_RE.match(text):
        return None
    try:
        return _naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _parse_us_slash(text: str) -> datetime | None:
    parts = text.split("/")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    month, day, year = parts
    if len(year) != 4:
        return None
    return _parse_iso(f"{year}-{month.zfill(2)}-{day.zfill(2)}")


def _parse_day_first_dash(text: str) -> datetime | None:
    if "-" not in text or _LEADING_YEAR_RE.match(text):
        return None
    try:
        return datetime.strptime(text, "%d-%m-%Y")
    except ValueError:
        return None


def _parse_permissive(text: str) -> datetime | None:
    try:
        return _naive_utc(dateutil_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def parse_date(value: str | None, *, permissive: bool = False) -> datetime:
    """Parse *value* into a naive datetime or raise DateParseError.

    Empty or blank input is always an error.
    """
    text = (value or "").strip()
    if not text:
        raise DateParseError(value or "")

    for attempt in (_parse_iso, _parse_us_slash, _parse_day_first_dash):
        result = attempt(text)
        if result is not None:
            return result

    if permissive:
        result = _parse_permissive(text)
        if result is not None:
            return result

    raise DateParseError(text)


def try_parse_date(
    value: str | None,
    diagnostics: Diagnostics | None = None,
    field_name: str = "",
    *,
    permissive: bool = False,
) -> datetime | None:
    """Like parse_date, but return None instead of raising.

    Missing values return None silently; unparsable ones are reported to
    *diagnostics* as a date-parse event.
    """
    if value is None or not str(value).strip():
        return None
    try:
        return parse_date(value, permissive=permissive)
    except DateParseError:
        if diagnostics is not None:
            diagnostics.date_parse_error(value, field_name)
        return None


def elapsed_days(start: datetime, end: datetime) -> int:
    """Whole days from *start* to *end*, truncated toward zero."""
    return int((end - start).total_seconds() / 86400)


def month_key(dt: datetime) -> str:
    """Zero-padded ``YYYY-MM`` bucket key (sorts lexicographically)."""
    return f"{dt.year:04d}-{dt.month:02d}"


def to_iso(dt: datetime | None) -> str | None:
    """ISO string; date-only when the instant falls on midnight."""
    if dt is None:
        return None
    if dt.hour == dt.minute == dt.second == dt.microsecond == 0:
        return dt.date().isoformat()
    return dt.isoformat()
