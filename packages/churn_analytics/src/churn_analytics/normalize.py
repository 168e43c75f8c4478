"""Raw sheet rows -> typed ChurnRecord / ReactivationRecord.

Each field is read through a fallback chain of column-map fields. Categorical
fields fall back to a sentinel default, money fields to ``None`` when no cell
in the chain parses.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence

from churn_analytics.column_map import ColumnMap
from churn_analytics.dates import try_parse_date
from churn_analytics.diagnostics import Diagnostics, ensure
from churn_analytics.records import UNCATEGORIZED, UNKNOWN, ChurnRecord, ReactivationRecord

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")

# Fallback chains: canonical attribute -> column-map fields, tried in order.
CHURN_ID_CHAIN = ("platform_client_id", "account_id")
CHURN_MRR_CHAIN = ("mrr", "average_mrr")
CHURN_PRICE_CHAIN = ("price", "tpv")
REACTIVATION_ID_CHAIN = ("platform_client_id", "id")


def parse_money(
    raw: object,
    diagnostics: Diagnostics | None = None,
    field_name: str = "amount",
    row: int | None = None,
) -> float | None:
    """Parse a currency cell such as ``"$1,250.00"``.

    Returns None when nothing numeric remains or the remainder is malformed.
    Negative values are clamped to 0.0 and reported as a data-quality skip.
    """
    if raw is None:
        return None
    cleaned = _NON_NUMERIC.sub("", str(raw))
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        logger.debug("Row %s: malformed %s %r treated as absent", row, field_name, raw)
        return None
    if value <= 0:
        if value < 0:
            ensure(diagnostics).skip(
                "Row %s: negative %s %r clamped to 0", row, field_name, raw, field=field_name
            )
        return 0.0
    return value


def _money(
    cm: ColumnMap,
    row: Sequence[object],
    chain: tuple[str, ...],
    diagnostics: Diagnostics,
    index: int,
) -> float | None:
    for field in chain:
        value = parse_money(cm.get(row, field), diagnostics, field, index)
        if value is not None:
            return value
    return None


def _categorical(
    cm: ColumnMap,
    row: Sequence[object],
    field: str,
    default: str,
    diagnostics: Diagnostics,
    index: int,
) -> str:
    value = cm.get(row, field)
    if value is None:
        diagnostics.default(field, default, index)
        return default
    return value


def _identity(
    cm: ColumnMap, row: Sequence[object], chain: tuple[str, ...], index: int
) -> tuple[str, bool]:
    value = cm.first(row, *chain)
    if value is None:
        return f"record-{index}", True
    return value, False


def normalize_churn_row(
    row: Sequence[object],
    index: int,
    column_map: ColumnMap | None = None,
    diagnostics: Diagnostics | None = None,
) -> ChurnRecord:
    """Map one churn-sheet row to a ChurnRecord."""
    cm = column_map or ColumnMap.default("churn")
    diag = ensure(diagnostics)

    record_id, synthesized = _identity(cm, row, CHURN_ID_CHAIN, index)
    record = ChurnRecord(
        id=record_id,
        id_synthesized=synthesized,
        client_name=_categorical(cm, row, "client_name", UNKNOWN, diag, index),
        churn_category=_categorical(cm, row, "churn_category", UNCATEGORIZED, diag, index),
        service_category=_categorical(cm, row, "service_category", UNKNOWN, diag, index),
        churn_date=cm.get(row, "churn_date"),
        deactivation_date=cm.get(row, "deactivation_date"),
        estimated_churn_date=cm.get(row, "estimated_churn_date"),
        created_date=cm.get(row, "created_date"),
        competitor=cm.get(row, "competitor"),
        mrr=_money(cm, row, CHURN_MRR_CHAIN, diag, index),
        price=_money(cm, row, CHURN_PRICE_CHAIN, diag, index),
        feedback=cm.get(row, "feedback"),
    )

    if record.primary_churn_date and record.churn_instant is None:
        diag.date_parse_error(record.primary_churn_date, "primary_churn_date")
    if record.created_date and record.churn_instant and record.months_before_churn is None:
        created = try_parse_date(record.created_date, diag, "created_date")
        if created is not None:
            diag.skip(
                "Row %s: created date %s is after churn date %s; lifetime left unset",
                index,
                record.created_date,
                record.primary_churn_date,
            )
    return record


def normalize_reactivation_row(
    row: Sequence[object],
    index: int,
    column_map: ColumnMap | None = None,
    diagnostics: Diagnostics | None = None,
) -> ReactivationRecord:
    """Map one reactivation-sheet row to a ReactivationRecord."""
    cm = column_map or ColumnMap.default("reactivation")
    diag = ensure(diagnostics)

    record_id, synthesized = _identity(cm, row, REACTIVATION_ID_CHAIN, index)
    return ReactivationRecord(
        id=record_id,
        id_synthesized=synthesized,
        platform_client_id=cm.get(row, "platform_client_id"),
        account_name=_categorical(cm, row, "account_name", UNKNOWN, diag, index),
        churn_date=cm.get(row, "churn_date"),
        reactivation_date=cm.get(row, "reactivation_date"),
        mrr=_money(cm, row, ("mrr",), diag, index),
        reactivation_reason=_categorical(cm, row, "reactivation_reason", UNKNOWN, diag, index),
        customer_success_path=_categorical(
            cm, row, "customer_success_path", UNKNOWN, diag, index
        ),
    )


def _is_blank(row: Sequence[object]) -> bool:
    return all(cell is None or not str(cell).strip() for cell in row)


def normalize_churn_rows(
    rows: Iterable[Sequence[object]],
    column_map: ColumnMap | None = None,
    diagnostics: Diagnostics | None = None,
) -> list[ChurnRecord]:
    """Normalize every non-blank row; *rows* excludes the header."""
    diag = ensure(diagnostics)
    records = [
        normalize_churn_row(row, i, column_map, diag)
        for i, row in enumerate(rows)
        if not _is_blank(row)
    ]
    logger.info("Normalized %d churn records", len(records))
    return records


def normalize_reactivation_rows(
    rows: Iterable[Sequence[object]],
    column_map: ColumnMap | None = None,
    diagnostics: Diagnostics | None = None,
) -> list[ReactivationRecord]:
    diag = ensure(diagnostics)
    records = [
        normalize_reactivation_row(row, i, column_map, diag)
        for i, row in enumerate(rows)
        if not _is_blank(row)
    ]
    logger.info("Normalized %d reactivation records", len(records))
    return records
