"""Tests for churn_analytics.normalize and the derived fields on records."""

from __future__ import annotations

import logging
from datetime import datetime

import pytest

from churn_analytics.column_map import ColumnMap
from churn_analytics.diagnostics import Diagnostics, QualityEvent
from churn_analytics.normalize import (
    normalize_churn_row,
    normalize_churn_rows,
    normalize_reactivation_row,
    normalize_reactivation_rows,
    parse_money,
)
from churn_analytics.records import UNCATEGORIZED, UNKNOWN, ChurnRecord


def churn_row(**cells) -> list[str]:
    """Row in the default churn layout; unspecified cells are blank."""
    cm = ColumnMap.default("churn")
    row = [""] * len(cm.columns)
    for name, value in cells.items():
        row[cm.index(name)] = value
    return row


def reactivation_row(**cells) -> list[str]:
    cm = ColumnMap.default("reactivation")
    row = [""] * len(cm.columns)
    for name, value in cells.items():
        row[cm.index(name)] = value
    return row


class TestParseMoney:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$1,250.00", 1250.0),
            ("500", 500.0),
            (" 99.5 ", 99.5),
            ("USD 42", 42.0),
            (300, 300.0),
        ],
    )
    def test_parses(self, raw, expected):
        assert parse_money(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "N/A", "$"])
    def test_absent(self, raw):
        assert parse_money(raw) is None

    def test_malformed_is_absent(self):
        assert parse_money("1.2.3") is None

    def test_zero(self):
        assert parse_money("0") == 0.0

    def test_negative_clamped_with_warning(self, caplog):
        diag = Diagnostics()
        with caplog.at_level(logging.WARNING, logger="churn_analytics"):
            assert parse_money("-50", diag, "mrr", 3) == 0.0
        assert diag.count(QualityEvent.DATA_QUALITY_SKIP) == 1
        assert any("negative mrr" in r.getMessage() for r in caplog.records)


class TestNormalizeChurnRow:
    def test_full_row(self):
        row = churn_row(
            platform_client_id="C1",
            client_name="Acme Inc",
            created_date="2023-01-01",
            churn_date="2024-01-15",
            churn_category="Pricing",
            service_category="Payroll",
            competitor="Gusto",
            mrr="$500",
            price="100",
            feedback="Too expensive",
        )
        rec = normalize_churn_row(row, 0)
        assert rec.id == "C1"
        assert rec.id_synthesized is False
        assert rec.client_name == "Acme Inc"
        assert rec.churn_category == "Pricing"
        assert rec.competitor == "Gusto"
        assert rec.mrr == 500.0
        assert rec.price == 100.0
        assert rec.churn_instant == datetime(2024, 1, 15)
        assert rec.months_before_churn == 12

    def test_id_falls_back_to_account_id(self):
        rec = normalize_churn_row(churn_row(account_id="A7", client_name="X"), 0)
        assert rec.id == "A7"

    def test_id_synthesized_from_index(self):
        rec = normalize_churn_row(churn_row(client_name="X"), 4)
        assert rec.id == "record-4"
        assert rec.id_synthesized is True

    def test_categorical_defaults(self):
        diag = Diagnostics()
        rec = normalize_churn_row(churn_row(platform_client_id="C1"), 0, diagnostics=diag)
        assert rec.client_name == UNKNOWN
        assert rec.churn_category == UNCATEGORIZED
        assert rec.service_category == UNKNOWN
        assert diag.count(QualityEvent.MISSING_FIELD_DEFAULT) == 3

    def test_money_fallback_chains(self):
        rec = normalize_churn_row(churn_row(average_mrr="150", tpv="40"), 0)
        assert rec.mrr == 150.0
        assert rec.price == 40.0

    def test_money_absent(self):
        rec = normalize_churn_row(churn_row(client_name="X"), 0)
        assert rec.mrr is None
        assert rec.price is None

    def test_negative_mrr(self):
        diag = Diagnostics()
        rec = normalize_churn_row(churn_row(mrr="-50"), 0, diagnostics=diag)
        assert rec.mrr == 0.0
        assert diag.count(QualityEvent.DATA_QUALITY_SKIP) == 1

    def test_unparsable_churn_date_reported(self):
        diag = Diagnostics()
        rec = normalize_churn_row(churn_row(churn_date="not a date"), 0, diagnostics=diag)
        assert rec.churn_instant is None
        assert rec.churn_date == "not a date"
        assert diag.count(QualityEvent.DATE_PARSE_ERROR) == 1

    def test_created_after_churn(self):
        diag = Diagnostics()
        rec = normalize_churn_row(
            churn_row(created_date="2024-06-01", churn_date="2024-01-01"), 0, diagnostics=diag
        )
        assert rec.months_before_churn is None
        assert diag.count(QualityEvent.DATA_QUALITY_SKIP) == 1

    def test_custom_column_map(self):
        cm = ColumnMap(kind="churn", columns={"client_name": 1, "churn_category": 0})
        rec = normalize_churn_row(["Service", "Beta"], 0, cm)
        assert rec.client_name == "Beta"
        assert rec.churn_category == "Service"


class TestPrimaryChurnDate:
    def test_deactivation_first(self, make_churn):
        rec = make_churn(
            deactivation_date="2024-02-01",
            churn_date="2024-01-01",
            estimated_churn_date="2023-12-01",
        )
        assert rec.primary_churn_date == "2024-02-01"
        assert rec.churn_instant == datetime(2024, 2, 1)

    def test_churn_date_second(self, make_churn):
        rec = make_churn(churn_date="2024-01-01", estimated_churn_date="2023-12-01")
        assert rec.primary_churn_date == "2024-01-01"

    def test_estimate_last(self, make_churn):
        rec = make_churn(estimated_churn_date="2023-12-01")
        assert rec.churn_instant == datetime(2023, 12, 1)

    def test_none(self, make_churn):
        rec = make_churn()
        assert rec.primary_churn_date is None
        assert rec.churn_instant is None


class TestMonthsBeforeChurn:
    def test_floor(self, make_churn):
        # 60 days / 30.44 = 1.97
        rec = make_churn(created_date="2024-01-01", churn_date="2024-03-01")
        assert rec.months_before_churn == 1

    def test_same_day(self, make_churn):
        rec = make_churn(created_date="2024-01-01", churn_date="2024-01-01")
        assert rec.months_before_churn == 0

    def test_missing_created(self, make_churn):
        assert make_churn(churn_date="2024-01-01").months_before_churn is None

    def test_unparsable_created(self, make_churn):
        rec = make_churn(created_date="garbage", churn_date="2024-01-01")
        assert rec.months_before_churn is None

    def test_to_dict_keys(self, make_churn):
        data = make_churn(churn_date="2024-01-01", created_date="2023-01-01").to_dict()
        assert data["churnDate"] == "2024-01-01"
        assert data["monthsBeforeChurn"] == 11
        assert data["clientName"] == "Client C1"


class TestNormalizeReactivationRow:
    def test_full_row(self):
        row = reactivation_row(
            id="R1",
            platform_client_id="C1",
            account_name="Acme",
            churn_date="2024-01-15",
            reactivation_date="2024-02-14",
            mrr="$500",
            reactivation_reason="Price Match",
            customer_success_path="Retention",
        )
        rec = normalize_reactivation_row(row, 0)
        assert rec.id == "C1"
        assert rec.platform_client_id == "C1"
        assert rec.mrr == 500.0
        assert rec.reactivation_reason == "Price Match"
        assert rec.match_ids == ("C1",)

    def test_id_column_fallback(self):
        rec = normalize_reactivation_row(reactivation_row(id="R9", account_name="X"), 0)
        assert rec.id == "R9"
        assert rec.match_ids == ("R9",)

    def test_synthesized_id_not_a_match_key(self):
        rec = normalize_reactivation_row(reactivation_row(account_name="X"), 2)
        assert rec.id == "record-2"
        assert rec.match_ids == ()

    def test_defaults(self):
        rec = normalize_reactivation_row(reactivation_row(id="R1"), 0)
        assert rec.account_name == UNKNOWN
        assert rec.reactivation_reason == UNKNOWN
        assert rec.customer_success_path == UNKNOWN


class TestNormalizeRows:
    def test_blank_rows_skipped(self):
        rows = [churn_row(client_name="A"), ["", "  ", ""], churn_row(client_name="B")]
        records = normalize_churn_rows(rows)
        assert [r.client_name for r in records] == ["A", "B"]
        assert records[1].id == "record-2"

    def test_sample_churn_sheet(self, churn_table):
        diag = Diagnostics()
        records = normalize_churn_rows(churn_table[1:], diagnostics=diag)
        assert len(records) == 8
        assert all(isinstance(r, ChurnRecord) for r in records)
        assert records[3].churn_instant == datetime(2024, 2, 15)
        assert records[4].mrr == 150.0
        assert records[5].mrr == 0.0
        assert records[6].id == "record-6"
        assert diag.count(QualityEvent.DATE_PARSE_ERROR) == 1

    def test_sample_reactivation_sheet(self, reactivation_table):
        records = normalize_reactivation_rows(reactivation_table[1:])
        assert [r.id for r in records] == ["C1", "R2", "R3", "X9"]
        assert records[0].mrr == 500.0
