"""Shared fixtures for churn_analytics tests."""

from __future__ import annotations

import csv
from pathlib import Path

import pytest

from churn_analytics.diagnostics import Diagnostics
from churn_analytics.records import ChurnRecord, ReactivationRecord
from churn_analytics.settings import Settings

DATA_DIR = Path(__file__).parent / "data"
CHURN_CSV = DATA_DIR / "churn.csv"
REACTIVATIONS_CSV = DATA_DIR / "reactivations.csv"


def _read_csv(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return [row for row in csv.reader(f)]


@pytest.fixture()
def churn_csv_path() -> Path:
    """Path to the 8-row synthetic churn sheet."""
    return CHURN_CSV


@pytest.fixture()
def reactivations_csv_path() -> Path:
    """Path to the 4-row synthetic reactivation sheet."""
    return REACTIVATIONS_CSV


@pytest.fixture()
def churn_table() -> list[list[str]]:
    """Churn sheet as a list of rows, header first."""
    return _read_csv(CHURN_CSV)


@pytest.fixture()
def reactivation_table() -> list[list[str]]:
    """Reactivation sheet as a list of rows, header first."""
    return _read_csv(REACTIVATIONS_CSV)


@pytest.fixture()
def sample_settings(churn_csv_path: Path, reactivations_csv_path: Path, tmp_path: Path) -> Settings:
    """Settings pointing at both sample CSVs."""
    return Settings(
        churn_file=churn_csv_path,
        reactivations_file=reactivations_csv_path,
        output_dir=tmp_path,
    )


@pytest.fixture()
def diagnostics() -> Diagnostics:
    return Diagnostics()


@pytest.fixture()
def make_churn():
    """Factory for ChurnRecord with sensible defaults."""

    def _make(id: str = "C1", **kwargs) -> ChurnRecord:
        kwargs.setdefault("client_name", f"Client {id}")
        kwargs.setdefault("churn_category", "Pricing")
        return ChurnRecord(id=id, **kwargs)

    return _make


@pytest.fixture()
def make_reactivation():
    """Factory for ReactivationRecord with sensible defaults."""

    def _make(id: str = "R1", **kwargs) -> ReactivationRecord:
        kwargs.setdefault("account_name", f"Account {id}")
        return ReactivationRecord(id=id, **kwargs)

    return _make
