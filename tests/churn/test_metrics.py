"""Tests for churn_analytics.analyses.metrics."""

from __future__ import annotations

import pytest

from churn_analytics.analyses.metrics import ReactivationMetrics, calculate_reactivation_metrics
from churn_analytics.diagnostics import Diagnostics, QualityEvent


class TestCalculateReactivationMetrics:
    def test_empty(self):
        m = calculate_reactivation_metrics([], 0)
        assert m == ReactivationMetrics(
            total_reactivations=0,
            average_days_to_reactivation=0,
            reactivation_rate=0.0,
            valid_count=0,
            parse_error_count=0,
            skipped_count=0,
        )

    def test_empty_with_churns(self):
        m = calculate_reactivation_metrics([], 10)
        assert m.average_days_to_reactivation == 0
        assert m.reactivation_rate == 0.0

    def test_single_pair(self, make_reactivation):
        r = make_reactivation(churn_date="2024-01-15", reactivation_date="2024-02-14")
        m = calculate_reactivation_metrics([r], 4)
        assert m.valid_count == 1
        assert m.average_days_to_reactivation == 30
        assert m.reactivation_rate == 25.0

    def test_zero_churns_rate_is_zero(self, make_reactivation):
        r = make_reactivation(churn_date="2024-01-15", reactivation_date="2024-02-14")
        m = calculate_reactivation_metrics([r], 0)
        assert m.reactivation_rate == 0.0
        assert m.average_days_to_reactivation == 30

    def test_rate_not_rounded(self, make_reactivation):
        r = make_reactivation(churn_date="2024-01-01", reactivation_date="2024-01-05")
        m = calculate_reactivation_metrics([r], 3)
        assert m.reactivation_rate == pytest.approx(100 / 3)

    def test_average_rounds_half_up(self, make_reactivation):
        records = [
            make_reactivation("R1", churn_date="2024-01-01", reactivation_date="2024-01-11"),
            make_reactivation("R2", churn_date="2024-01-01", reactivation_date="2024-01-12"),
        ]
        # (10 + 11) / 2 = 10.5
        assert calculate_reactivation_metrics(records, 2).average_days_to_reactivation == 11

    def test_reactivation_before_churn_is_skipped(self, make_reactivation):
        diag = Diagnostics()
        r = make_reactivation(churn_date="2024-01-20", reactivation_date="2024-01-10")
        m = calculate_reactivation_metrics([r], 1, diag)
        assert m.valid_count == 0
        assert m.parse_error_count == 0
        assert m.skipped_count == 1
        assert m.average_days_to_reactivation == 0
        assert diag.count(QualityEvent.DATA_QUALITY_SKIP) == 1

    def test_same_day_is_skipped(self, make_reactivation):
        r = make_reactivation(churn_date="2024-01-10", reactivation_date="2024-01-10")
        m = calculate_reactivation_metrics([r], 1)
        assert m.valid_count == 0
        assert m.skipped_count == 1

    def test_unparsable_counts_as_parse_error(self, make_reactivation):
        diag = Diagnostics()
        r = make_reactivation(churn_date="soon", reactivation_date="2024-01-10")
        m = calculate_reactivation_metrics([r], 1, diag)
        assert m.parse_error_count == 1
        assert m.skipped_count == 0
        assert diag.count(QualityEvent.DATE_PARSE_ERROR) == 1

    def test_missing_dates_ignored_silently(self, make_reactivation):
        records = [
            make_reactivation("R1", reactivation_date="2024-01-10"),
            make_reactivation("R2", churn_date="2024-01-10"),
        ]
        m = calculate_reactivation_metrics(records, 2)
        assert m.total_reactivations == 2
        assert m.valid_count == 0
        assert m.parse_error_count == 0
        assert m.skipped_count == 0

    def test_mixed_formats(self, make_reactivation):
        r = make_reactivation(churn_date="01/15/2024", reactivation_date="14-02-2024")
        assert calculate_reactivation_metrics([r], 1).average_days_to_reactivation == 30

    def test_to_dict(self, make_reactivation):
        r = make_reactivation(churn_date="2024-01-15", reactivation_date="2024-02-14")
        data = calculate_reactivation_metrics([r], 4).to_dict()
        assert data["averageDaysToReactivation"] == 30
        assert data["reactivationRate"] == 25.0
        assert data["parseErrorCount"] == 0
