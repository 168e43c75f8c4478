"""Leveled data-quality events, decoupled from the computations that raise them.

Every core function accepts an optional ``Diagnostics``. Events are logged
through a standard ``logging.Logger`` and counted per kind so the pipeline can
report parse-error and skip counts without the aggregation code knowing how
they are surfaced.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class QualityEvent(str, Enum):
    """Kinds of recoverable data-quality conditions."""

    DATE_PARSE_ERROR = "date_parse_error"
    DATA_QUALITY_SKIP = "data_quality_skip"
    MISSING_FIELD_DEFAULT = "missing_field_default"


@dataclass
class Diagnostics:
    """Event sink with per-kind counters."""

    logger: logging.Logger = field(default_factory=lambda: logger)
    counts: Counter = field(default_factory=Counter)
    metrics: dict[str, float] = field(default_factory=dict)

    def record(
        self,
        kind: QualityEvent,
        message: str,
        *args: Any,
        level: int = logging.WARNING,
        **fields: Any,
    ) -> None:
        self.counts[kind.value] += 1
        self.logger.log(level, message, *args, extra={"event": kind.value, **fields})

    def date_parse_error(self, value: str, field_name: str = "") -> None:
        self.record(
            QualityEvent.DATE_PARSE_ERROR,
            "Unparsable date %r in %s",
            value,
            field_name or "date field",
            field=field_name,
        )

    def skip(self, message: str, *args: Any, **fields: Any) -> None:
        self.record(QualityEvent.DATA_QUALITY_SKIP, message, *args, **fields)

    def default(self, field_name: str, default: str, row: int | None = None) -> None:
        # Missing categorical fields are routine; keep them out of WARNING output.
        self.record(
            QualityEvent.MISSING_FIELD_DEFAULT,
            "Row %s: %s missing, defaulting to %r",
            row,
            field_name,
            default,
            level=logging.DEBUG,
            field=field_name,
        )

    def gauge(self, name: str, value: float) -> None:
        """Record a point-in-time measurement (e.g. match rate)."""
        self.metrics[name] = value
        self.logger.info("%s = %s", name, value, extra={"metric": name})

    def count(self, kind: QualityEvent) -> int:
        return self.counts.get(kind.value, 0)

    def summary(self) -> dict[str, Any]:
        return {
            "events": {kind.value: self.count(kind) for kind in QualityEvent},
            "metrics": dict(self.metrics),
        }


def ensure(diagnostics: Diagnostics | None) -> Diagnostics:
    """Return *diagnostics* or a fresh sink bound to the module logger."""
    return diagnostics if diagnostics is not None else Diagnostics()
