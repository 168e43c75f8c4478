"""Pydantic configuration for churn_analytics."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator, model_validator

from churn_analytics.column_map import ColumnMap
from churn_analytics.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")

_SHEET_SUFFIXES = (".csv", ".xlsx", ".xls")


class Settings(BaseModel):
    """Application configuration -- immutable after creation.

    Either ``workbook`` (one Excel file holding both sheets) or the pair
    ``churn_file`` / ``reactivations_file`` must be set.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    workbook: Path | None = None
    churn_file: Path | None = None
    reactivations_file: Path | None = None
    churn_sheet: str = "churn"
    reactivations_sheet: str = "reactivations"
    churn_columns: ColumnMap = ColumnMap.default("churn")
    reactivation_columns: ColumnMap = ColumnMap.default("reactivation")
    resolve_headers: bool = False
    output_dir: Path = Path("output/")
    top_n_categories: int = 10
    trend_categories: int = 5

    @field_validator("workbook", "churn_file", "reactivations_file", mode="before")
    @classmethod
    def expand_and_validate_sheet_file(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        p = Path(v).expanduser().resolve()
        if not p.exists():
            raise ValueError(f"Data file not found: {p}")
        if p.suffix.lower() not in _SHEET_SUFFIXES:
            raise ValueError(f"Unsupported file type: {p.suffix}")
        return p

    @field_validator("churn_columns", mode="before")
    @classmethod
    def coerce_churn_columns(cls, v: Any) -> Any:
        return _coerce_column_map("churn", v)

    @field_validator("reactivation_columns", mode="before")
    @classmethod
    def coerce_reactivation_columns(cls, v: Any) -> Any:
        return _coerce_column_map("reactivation", v)

    @field_validator("output_dir", mode="before")
    @classmethod
    def expand_output_dir(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("top_n_categories", "trend_categories")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @model_validator(mode="after")
    def validate_sources(self) -> Settings:
        if self.workbook is not None and (self.churn_file or self.reactivations_file):
            raise ValueError("Set either workbook or churn_file/reactivations_file, not both")
        if self.workbook is not None and self.workbook.suffix.lower() == ".csv":
            raise ValueError("workbook must be an Excel file (.xlsx/.xls)")
        if self.reactivations_file is not None and self.churn_file is None:
            raise ValueError("reactivations_file requires churn_file")
        return self

    @property
    def has_source(self) -> bool:
        return self.workbook is not None or self.churn_file is not None

    @classmethod
    def from_yaml(cls, config_path: Path = DEFAULT_CONFIG_PATH, **cli_overrides) -> Settings:
        """Load from YAML, merge CLI overrides (highest priority)."""
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.debug("No config file at %s, using defaults", config_path)
            data = {}
        data.update({k: v for k, v in cli_overrides.items() if v is not None})
        try:
            return cls(**data)
        except Exception as e:
            raise ConfigError(f"Configuration error: {e}") from e

    @classmethod
    def from_args(cls, **kwargs) -> Settings:
        """Create settings directly from arguments (no YAML needed)."""
        try:
            return cls(**{k: v for k, v in kwargs.items() if v is not None})
        except Exception as e:
            raise ConfigError(f"Configuration error: {e}") from e


def _coerce_column_map(kind: str, value: Any) -> Any:
    """Accept a bare ``{field: index}`` mapping from YAML."""
    if isinstance(value, dict) and "columns" not in value:
        return {"kind": kind, "columns": value}
    return value
