"""Churn <-> reactivation matching and per-category reactivation correlation."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from churn_analytics.analyses.base import ReactivationCorrelation, safe_percentage, safe_ratio
from churn_analytics.dates import elapsed_days, to_iso, try_parse_date
from churn_analytics.diagnostics import Diagnostics, ensure
from churn_analytics.records import UNKNOWN, ChurnRecord, ReactivationRecord

logger = logging.getLogger(__name__)

LEGAL_SUFFIXES: tuple[str, ...] = ("inc", "llc", "ltd", "corp", "corporation", "sa", "sas", "spa")

_WHITESPACE = re.compile(r"\s+")
_DOTS = re.compile(r"\.")
_SEPARATORS = re.compile(r"[,\-()]")
_SUFFIXES = re.compile(r"\b(?:%s)\b" % "|".join(LEGAL_SUFFIXES))


def normalize_name(name: str | None) -> str | None:
    """Comparable form of a company name, or None if nothing usable remains.

    ``"ACME, Inc."``, ``"Acme S.A."`` and ``"acme"`` all normalize to ``"acme"``.
    Dots are deleted so dotted suffixes collapse to one word before stripping.
    """
    if not name:
        return None
    text = _WHITESPACE.sub(" ", name.lower().strip())
    text = _DOTS.sub("", text)
    text = _SEPARATORS.sub(" ", text)
    text = _SUFFIXES.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    if not text or text == UNKNOWN.lower():
        return None
    return text


@dataclass(frozen=True)
class MatchedPair:
    """One churn -> reactivation cycle with a positive gap in days."""

    client_name: str
    churn_record_id: str | None
    churn_date: str
    reactivation_date: str
    elapsed_days: int
    churn_category: str
    reactivation_reason: str
    mrr_recovered: float

    @property
    def matched(self) -> bool:
        """True when a churn-sheet record was found for this reactivation."""
        return self.churn_record_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "clientName": self.client_name,
            "churnRecordId": self.churn_record_id,
            "churnDate": self.churn_date,
            "reactivationDate": self.reactivation_date,
            "elapsedDays": self.elapsed_days,
            "churnCategory": self.churn_category,
            "reactivationReason": self.reactivation_reason,
            "mrrRecovered": self.mrr_recovered,
        }


class ChurnIndex:
    """Hashed churn lookup by identifier, then by normalized client name.

    Synthesized ``record-N`` ids are never indexed. When two churn rows share
    a key, the later row wins.
    """

    def __init__(self, churns: Iterable[ChurnRecord]) -> None:
        self.by_id: dict[str, ChurnRecord] = {}
        self.by_name: dict[str, ChurnRecord] = {}
        for churn in churns:
            if not churn.id_synthesized:
                self.by_id[churn.id] = churn
            key = normalize_name(churn.client_name)
            if key:
                self.by_name[key] = churn

    def lookup(self, reactivation: ReactivationRecord) -> ChurnRecord | None:
        for record_id in reactivation.match_ids:
            churn = self.by_id.get(record_id)
            if churn is not None:
                return churn
        key = normalize_name(reactivation.account_name)
        if key:
            return self.by_name.get(key)
        return None


def match_reactivations(
    churns: Iterable[ChurnRecord],
    reactivations: Iterable[ReactivationRecord],
    diagnostics: Diagnostics | None = None,
) -> list[MatchedPair]:
    """Pair reactivations with churn records.

    The churn instant comes from the reactivation row's own churn date; the
    matched churn record's date is used only when that cell is empty. Pairs
    with zero or negative elapsed days are dropped. Output follows the order
    of *reactivations*.
    """
    diag = ensure(diagnostics)
    index = ChurnIndex(churns)
    reactivation_list = list(reactivations)
    pairs: list[MatchedPair] = []

    for reactivation in reactivation_list:
        churn = index.lookup(reactivation)
        if not reactivation.reactivation_date:
            continue
        churn_raw = reactivation.churn_date or (churn.primary_churn_date if churn else None)
        if churn_raw is None:
            continue

        churned = try_parse_date(churn_raw, diag, "churn_date")
        reactivated = try_parse_date(reactivation.reactivation_date, diag, "reactivation_date")
        if churned is None or reactivated is None:
            continue

        days = elapsed_days(churned, reactivated)
        if days <= 0:
            diag.skip(
                "Reactivation %s: %d days between churn and reactivation, pair dropped",
                reactivation.id,
                days,
            )
            continue

        client_name = reactivation.account_name
        if client_name == UNKNOWN and churn is not None:
            client_name = churn.client_name
        pairs.append(
            MatchedPair(
                client_name=client_name,
                churn_record_id=churn.id if churn else None,
                churn_date=to_iso(churned),
                reactivation_date=to_iso(reactivated),
                elapsed_days=days,
                churn_category=churn.churn_category if churn else UNKNOWN,
                reactivation_reason=reactivation.reactivation_reason,
                mrr_recovered=reactivation.mrr or 0.0,
            )
        )

    matched = sum(1 for p in pairs if p.matched)
    diag.gauge("match_rate", safe_percentage(matched, len(reactivation_list)))
    logger.info(
        "Matched %d/%d reactivations (%d pairs total)", matched, len(reactivation_list), len(pairs)
    )
    return pairs


def correlate_by_category(
    churns: Iterable[ChurnRecord],
    pairs: Iterable[MatchedPair],
) -> list[ReactivationCorrelation]:
    """Reactivation rate and latency per churn category.

    A churn record counts once toward the rate however many times it came
    back; every pair contributes to the average gap. Sorted by rate desc.
    """
    totals: dict[str, int] = {}
    for churn in churns:
        totals[churn.churn_category] = totals.get(churn.churn_category, 0) + 1

    returned: dict[str, set[str]] = {}
    gap_totals: dict[str, int] = {}
    gap_counts: dict[str, int] = {}
    for pair in pairs:
        if not pair.matched or pair.churn_category not in totals:
            continue
        returned.setdefault(pair.churn_category, set()).add(pair.churn_record_id)
        gap_totals[pair.churn_category] = gap_totals.get(pair.churn_category, 0) + pair.elapsed_days
        gap_counts[pair.churn_category] = gap_counts.get(pair.churn_category, 0) + 1

    correlations = [
        ReactivationCorrelation(
            churn_category=category,
            reactivation_rate=safe_percentage(len(returned.get(category, ())), total),
            average_days_to_reactivation=safe_ratio(
                gap_totals.get(category, 0), gap_counts.get(category, 0), 1
            ),
            total_count=total,
        )
        for category, total in totals.items()
    ]
    return sorted(correlations, key=lambda c: c.reactivation_rate, reverse=True)
