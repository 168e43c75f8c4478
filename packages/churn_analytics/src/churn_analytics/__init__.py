"""Churn and reactivation analytics: record reconciliation and metric aggregation."""

from __future__ import annotations

from pathlib import Path

__version__ = "1.0.0"


def run_client(
    churn_file: str | Path,
    reactivations_file: str | Path | None = None,
    output_dir: str | Path = "output/",
    **kwargs,
):
    """Convenience entry-point for Jupyter / REPL usage.

    Usage::

        from churn_analytics import run_client
        result = run_client("data/churn.csv", "data/reactivations.csv")
    """
    from churn_analytics.pipeline import export_outputs, run_pipeline
    from churn_analytics.settings import Settings

    settings = Settings.from_args(
        churn_file=Path(churn_file),
        reactivations_file=Path(reactivations_file) if reactivations_file else None,
        output_dir=Path(output_dir),
        **kwargs,
    )
    result = run_pipeline(settings)
    export_outputs(result, settings.output_dir)
    return result
