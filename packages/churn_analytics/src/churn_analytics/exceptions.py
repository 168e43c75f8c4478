"""Exception hierarchy for churn_analytics."""

from __future__ import annotations


class ChurnAnalyticsError(Exception):
    """Base exception for all churn_analytics errors."""


class ConfigError(ChurnAnalyticsError):
    """Invalid or missing configuration."""


class DataLoadError(ChurnAnalyticsError):
    """Failed to load or parse a sheet."""


class ColumnMismatchError(DataLoadError):
    """Required columns missing from a sheet header."""

    def __init__(self, missing: set[str], available: set[str]) -> None:
        self.missing = missing
        self.available = available
        super().__init__(f"Missing required columns: {sorted(missing)}")


class UpstreamFetchError(DataLoadError):
    """The data source or narrative service could not be reached."""

    def __init__(self, source: str, cause: Exception | None = None) -> None:
        self.source = source
        self.cause = cause
        message = f"Failed to load analytics from {source}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DateParseError(ChurnAnalyticsError, ValueError):
    """A date string matched none of the supported formats."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Unrecognized date format: {value!r}")
