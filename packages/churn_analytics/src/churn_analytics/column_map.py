"""Sheet column maps: field name -> column index, plus header alias resolution.

The churn and reactivation sheets have been re-laid out several times. Each
layout is a ColumnMap so a schema change only touches configuration.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, model_validator

from churn_analytics.exceptions import ColumnMismatchError

SheetKind = Literal["churn", "reactivation"]

CHURN_FIELDS: tuple[str, ...] = (
    "platform_client_id",
    "account_id",
    "client_name",
    "created_date",
    "deactivation_date",
    "churn_date",
    "estimated_churn_date",
    "churn_category",
    "service_category",
    "competitor",
    "mrr",
    "average_mrr",
    "price",
    "tpv",
    "feedback",
)

REACTIVATION_FIELDS: tuple[str, ...] = (
    "id",
    "platform_client_id",
    "account_name",
    "churn_date",
    "reactivation_date",
    "mrr",
    "reactivation_reason",
    "customer_success_path",
)

# Current sheet layouts (one column per field, in field order).
DEFAULT_CHURN_COLUMNS: dict[str, int] = {name: i for i, name in enumerate(CHURN_FIELDS)}
DEFAULT_REACTIVATION_COLUMNS: dict[str, int] = {
    name: i for i, name in enumerate(REACTIVATION_FIELDS)
}

REQUIRED_CHURN_COLUMNS = {"client_name", "churn_category"}
REQUIRED_REACTIVATION_COLUMNS = {"account_name", "reactivation_date"}

# Maps normalized header text -> canonical field name.
CHURN_ALIASES: dict[str, str] = {
    # platform_client_id
    "platform_client_id": "platform_client_id",
    "platform_id": "platform_client_id",
    "client_id": "platform_client_id",
    # account_id
    "account_id": "account_id",
    "acct_id": "account_id",
    # client_name
    "client_name": "client_name",
    "client": "client_name",
    "customer_name": "client_name",
    "account_name": "client_name",
    "company": "client_name",
    # created_date
    "created_date": "created_date",
    "created": "created_date",
    "created_at": "created_date",
    "account_created": "created_date",
    # deactivation_date
    "deactivation_date": "deactivation_date",
    "deactivated": "deactivation_date",
    "deactivated_at": "deactivation_date",
    # churn_date
    "churn_date": "churn_date",
    "churned": "churn_date",
    "churned_at": "churn_date",
    # estimated_churn_date
    "estimated_churn_date": "estimated_churn_date",
    "est_churn_date": "estimated_churn_date",
    # churn_category
    "churn_category": "churn_category",
    "churn_reason": "churn_category",
    "reason": "churn_category",
    "category": "churn_category",
    # service_category
    "service_category": "service_category",
    "service": "service_category",
    # competitor
    "competitor": "competitor",
    "competitor_name": "competitor",
    # money
    "mrr": "mrr",
    "monthly_recurring_revenue": "mrr",
    "average_mrr": "average_mrr",
    "avg_mrr": "average_mrr",
    "price": "price",
    "tpv": "tpv",
    "total_payment_volume": "tpv",
    # feedback
    "feedback": "feedback",
    "client_feedback": "feedback",
    "comments": "feedback",
}

REACTIVATION_ALIASES: dict[str, str] = {
    "id": "id",
    "record_id": "id",
    "platform_client_id": "platform_client_id",
    "platform_id": "platform_client_id",
    "client_id": "platform_client_id",
    "account_name": "account_name",
    "client_name": "account_name",
    "customer_name": "account_name",
    "churn_date": "churn_date",
    "churned": "churn_date",
    "reactivation_date": "reactivation_date",
    "reactivated": "reactivation_date",
    "reactivated_at": "reactivation_date",
    "mrr": "mrr",
    "recovered_mrr": "mrr",
    "reactivation_reason": "reactivation_reason",
    "reason": "reactivation_reason",
    "customer_success_path": "customer_success_path",
    "cs_path": "customer_success_path",
}


def _fields_for(kind: SheetKind) -> tuple[str, ...]:
    return CHURN_FIELDS if kind == "churn" else REACTIVATION_FIELDS


def normalize_header(value: object) -> str:
    """Lowercase a header cell and fold spaces/hyphens to underscores."""
    key = str(value).strip().lower()
    for ch in (" ", "-"):
        key = key.replace(ch, "_")
    return key


class ColumnMap(BaseModel):
    """Positional layout of one sheet."""

    model_config = {"frozen": True}

    kind: SheetKind
    columns: dict[str, int]

    @model_validator(mode="after")
    def validate_columns(self) -> ColumnMap:
        known = set(_fields_for(self.kind))
        unknown = set(self.columns) - known
        if unknown:
            raise ValueError(f"Unknown {self.kind} fields in column map: {sorted(unknown)}")
        negative = {name: idx for name, idx in self.columns.items() if idx < 0}
        if negative:
            raise ValueError(f"Column indices must be >= 0: {negative}")
        return self

    @classmethod
    def default(cls, kind: SheetKind) -> ColumnMap:
        if kind == "churn":
            return cls(kind=kind, columns=dict(DEFAULT_CHURN_COLUMNS))
        return cls(kind=kind, columns=dict(DEFAULT_REACTIVATION_COLUMNS))

    @classmethod
    def from_header(cls, kind: SheetKind, header: Sequence[object]) -> ColumnMap:
        """Build a map by resolving header cells through the alias table.

        The first column claiming a field wins. Raises ColumnMismatchError if a
        required field has no column.
        """
        aliases = CHURN_ALIASES if kind == "churn" else REACTIVATION_ALIASES
        required = REQUIRED_CHURN_COLUMNS if kind == "churn" else REQUIRED_REACTIVATION_COLUMNS

        columns: dict[str, int] = {}
        for idx, cell in enumerate(header):
            field = aliases.get(normalize_header(cell))
            if field and field not in columns:
                columns[field] = idx

        missing = required - set(columns)
        if missing:
            available = {normalize_header(c) for c in header}
            raise ColumnMismatchError(missing=missing, available=available)
        return cls(kind=kind, columns=columns)

    def index(self, field: str) -> int | None:
        return self.columns.get(field)

    def get(self, row: Sequence[object], field: str) -> str | None:
        """Return the stripped cell for *field*, or None if absent or blank."""
        idx = self.columns.get(field)
        if idx is None or idx >= len(row):
            return None
        value = row[idx]
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() == "nan":
            return None
        return text

    def first(self, row: Sequence[object], *fields: str) -> str | None:
        """Walk a fallback chain and return the first non-blank cell."""
        for field in fields:
            value = self.get(row, field)
            if value is not None:
                return value
        return None
