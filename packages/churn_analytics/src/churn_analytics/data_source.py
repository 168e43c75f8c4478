"""Spreadsheet data sources returning raw rows for the churn and reactivation sheets.

Handles two layouts:
1. One Excel workbook with a churn tab and a reactivations tab (settings.workbook)
2. One CSV/Excel file per sheet (settings.churn_file / settings.reactivations_file)

Cells are read as text. The first row of every sheet is a header; it is
dropped, or resolved into a ColumnMap when settings.resolve_headers is on.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import pandas as pd

from churn_analytics.column_map import ColumnMap, SheetKind
from churn_analytics.exceptions import DataLoadError, UpstreamFetchError
from churn_analytics.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class SheetRows:
    """Raw contents of one sheet, header removed."""

    kind: SheetKind
    column_map: ColumnMap
    header: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


class RowSource(Protocol):
    def fetch(self, kind: SheetKind) -> SheetRows: ...


def _split_header(
    kind: SheetKind,
    table: Sequence[Sequence[object]],
    column_map: ColumnMap,
    resolve_headers: bool,
) -> SheetRows:
    if not table:
        return SheetRows(kind=kind, column_map=column_map)
    header = [str(c) for c in table[0]]
    if resolve_headers:
        column_map = ColumnMap.from_header(kind, header)
    rows = [["" if c is None else str(c) for c in row] for row in table[1:]]
    return SheetRows(kind=kind, column_map=column_map, header=header, rows=rows)


class SpreadsheetSource:
    """Reads sheets from disk with pandas."""

    def __init__(self, settings: Settings) -> None:
        if not settings.has_source:
            raise DataLoadError("No workbook or churn_file configured")
        self.settings = settings

    def _column_map(self, kind: SheetKind) -> ColumnMap:
        if kind == "churn":
            return self.settings.churn_columns
        return self.settings.reactivation_columns

    def _location(self, kind: SheetKind) -> tuple[Path | None, str | None]:
        s = self.settings
        if s.workbook is not None:
            sheet = s.churn_sheet if kind == "churn" else s.reactivations_sheet
            return s.workbook, sheet
        path = s.churn_file if kind == "churn" else s.reactivations_file
        return path, None

    def fetch(self, kind: SheetKind) -> SheetRows:
        path, sheet = self._location(kind)
        column_map = self._column_map(kind)
        if path is None:
            logger.warning("No %s sheet configured; continuing with no rows", kind)
            return SheetRows(kind=kind, column_map=column_map)

        table = _read_table(path, sheet)
        result = _split_header(kind, table, column_map, self.settings.resolve_headers)
        logger.info("Fetched %d %s rows from %s", len(result), kind, path.name)
        return result


class InMemorySource:
    """Row source over tables already in memory (first row is the header)."""

    def __init__(
        self,
        churn: Sequence[Sequence[object]],
        reactivations: Sequence[Sequence[object]] = (),
        churn_columns: ColumnMap | None = None,
        reactivation_columns: ColumnMap | None = None,
        resolve_headers: bool = False,
    ) -> None:
        self.tables = {"churn": churn, "reactivation": reactivations}
        self.column_maps = {
            "churn": churn_columns or ColumnMap.default("churn"),
            "reactivation": reactivation_columns or ColumnMap.default("reactivation"),
        }
        self.resolve_headers = resolve_headers

    def fetch(self, kind: SheetKind) -> SheetRows:
        return _split_header(kind, self.tables[kind], self.column_maps[kind], self.resolve_headers)


def _read_table(path: Path, sheet: str | None) -> list[list[str]]:
    """Read every cell of a CSV or Excel sheet as text."""
    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(path, sheet_name=sheet or 0, header=None, dtype=str)
    except pd.errors.EmptyDataError:
        return []
    except Exception as e:
        raise UpstreamFetchError(str(path), e) from e
    return df.fillna("").astype(str).values.tolist()
