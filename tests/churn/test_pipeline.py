"""Tests for churn_analytics.pipeline."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from churn_analytics import run_client
from churn_analytics.data_source import InMemorySource
from churn_analytics.diagnostics import QualityEvent
from churn_analytics.exceptions import ColumnMismatchError, UpstreamFetchError
from churn_analytics.pipeline import (
    ALL_TIME,
    AnalyticsResult,
    analyze_records,
    export_outputs,
    fetch_records,
    run_pipeline,
)
from churn_analytics.settings import Settings


class ExplodingSource:
    def fetch(self, kind):
        raise RuntimeError("connection reset")


class MismatchSource:
    def fetch(self, kind):
        raise ColumnMismatchError(missing={"client_name"}, available=set())


class RecordingGenerator:
    def __init__(self):
        self.prompts: list[str] = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        return "Pricing drives churn."


class FailingGenerator:
    def generate(self, prompt):
        raise RuntimeError("quota exceeded")


class TestFetchRecords:
    def test_in_memory(self, churn_table, reactivation_table):
        churns, reactivations = fetch_records(InMemorySource(churn_table, reactivation_table))
        assert len(churns) == 8
        assert len(reactivations) == 4

    def test_failure_wrapped(self):
        with pytest.raises(UpstreamFetchError, match="connection reset"):
            fetch_records(ExplodingSource())

    def test_domain_errors_propagate(self):
        with pytest.raises(ColumnMismatchError):
            fetch_records(MismatchSource())


class TestRunPipeline:
    def test_full_run(self, sample_settings: Settings):
        result = run_pipeline(sample_settings)
        assert isinstance(result, AnalyticsResult)
        assert result.date_range == (ALL_TIME, ALL_TIME)
        assert result.churn_analysis.total_churns == 8
        assert result.reactivation_analysis.total_reactivations == 4
        assert result.metrics.reactivation_rate == 25.0
        assert result.cross.reactivated_from_churns == 2
        assert result.summary.top_churn_category == "Pricing"

    def test_views_agree_on_latency(self, sample_settings: Settings):
        result = run_pipeline(sample_settings)
        days = result.metrics.average_days_to_reactivation
        assert result.churn_analysis.average_reactivation_days == days
        assert result.cross.average_days_to_reactivation == days
        assert result.summary.average_reactivation_days == days

    def test_diagnostics_counted(self, sample_settings: Settings):
        result = run_pipeline(sample_settings)
        assert result.diagnostics.count(QualityEvent.DATE_PARSE_ERROR) >= 1
        assert result.diagnostics.count(QualityEvent.DATA_QUALITY_SKIP) >= 2
        assert "match_rate" in result.diagnostics.metrics

    def test_explicit_range(self, sample_settings: Settings):
        result = run_pipeline(
            sample_settings, start=datetime(2024, 1, 1), end=datetime(2024, 1, 31, 23, 59)
        )
        assert result.churn_analysis.total_churns == 2
        assert result.metrics.total_reactivations == 1
        assert result.date_range == ("2024-01-01", "2024-01-31")

    def test_period(self, sample_settings: Settings):
        result = run_pipeline(sample_settings, period="last-30-days")
        assert result.date_range == ("last-30-days", "last-30-days")

    def test_in_memory_source(self, churn_table, reactivation_table):
        result = run_pipeline(Settings(), source=InMemorySource(churn_table, reactivation_table))
        assert result.churn_analysis.total_churns == 8

    def test_progress_callback(self, sample_settings: Settings):
        steps: list[tuple[int, int, str]] = []
        run_pipeline(sample_settings, on_progress=lambda s, t, m: steps.append((s, t, m)))
        assert [s for s, _, _ in steps] == [0, 1, 2]
        assert all(t == 3 for _, t, _ in steps)

    def test_failure_returns_nothing(self, sample_settings: Settings):
        with pytest.raises(UpstreamFetchError):
            run_pipeline(sample_settings, source=ExplodingSource())

    def test_no_generator_no_insights(self, sample_settings: Settings):
        assert run_pipeline(sample_settings).insights is None

    def test_generator_insights(self, sample_settings: Settings):
        generator = RecordingGenerator()
        result = run_pipeline(sample_settings, generator=generator)
        assert result.insights == "Pricing drives churn."
        assert len(generator.prompts) == 1
        assert "Total Churns: 8" in generator.prompts[0]
        assert "Gusto" in generator.prompts[0]

    def test_generator_failure_aborts(self, sample_settings: Settings):
        with pytest.raises(UpstreamFetchError, match="quota exceeded"):
            run_pipeline(sample_settings, generator=FailingGenerator())


class TestAnalyzeRecords:
    def test_empty(self):
        result = analyze_records([], [])
        assert result.churn_analysis.total_churns == 0
        assert result.metrics.reactivation_rate == 0.0
        assert result.summary.top_churn_category == "N/A"


class TestExport:
    def test_writes_json(self, sample_settings: Settings, tmp_path: Path):
        result = run_pipeline(sample_settings)
        files = export_outputs(result, tmp_path / "out")
        assert len(files) == 1
        data = json.loads(files[0].read_text(encoding="utf-8"))
        assert data["summary"]["totalChurns"] == 8
        assert data["reactivationMetrics"]["averageDaysToReactivation"] == 25
        assert data["dateRange"] == {"start": ALL_TIME, "end": ALL_TIME}
        assert data["diagnostics"]["events"]["date_parse_error"] >= 1

    def test_insights_payload_exported(self, sample_settings: Settings, tmp_path: Path):
        result = run_pipeline(sample_settings, generator=RecordingGenerator())
        data = json.loads(export_outputs(result, tmp_path)[0].read_text(encoding="utf-8"))
        payload = data["insightsPayload"]
        assert payload["version"] == 1
        assert payload["totalChurns"] == 8
        assert payload["totalMRRLost"] == 2650.0
        assert payload["averageReactivationDays"] == 25
        assert data["insights"] == "Pricing drives churn."


class TestRunClient:
    def test_run_client(self, churn_csv_path: Path, reactivations_csv_path: Path, tmp_path: Path):
        result = run_client(churn_csv_path, reactivations_csv_path, output_dir=tmp_path)
        assert result.churn_analysis.total_churns == 8
        assert list(tmp_path.glob("churn_analytics_*.json"))
