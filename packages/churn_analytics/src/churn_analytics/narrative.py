"""Input shape and prompts for the AI narrative service.

The service itself is any object with ``generate(prompt) -> str``. This module
only builds what is sent to it; returned text is passed through untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from churn_analytics.analyses.churn import ChurnAnalysis
from churn_analytics.exceptions import UpstreamFetchError
from churn_analytics.records import ChurnRecord

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 1
NO_FEEDBACK_MESSAGE = "No product feedback available in the churn data."


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


def build_insights_payload(analysis: ChurnAnalysis) -> dict[str, Any]:
    """Stable, versioned subset of ChurnAnalysis consumed by the narrative service.

    Keys::

        version, totalChurns, averageReactivationDays, totalMRRLost,
        topChurnCategories[{category, count, percentage}],
        topServiceCategories[{category, count, percentage}],
        competitorAnalysis[{competitor, count, totalMRR, averagePrice}],
        reactivationByChurnCategory[{churnCategory, reactivationRate,
                                     averageDaysToReactivation, totalCount}]
    """
    return {
        "version": PAYLOAD_VERSION,
        "totalChurns": analysis.total_churns,
        "averageReactivationDays": analysis.average_reactivation_days,
        "totalMRRLost": analysis.total_mrr_lost,
        "topChurnCategories": [c.to_dict() for c in analysis.top_churn_categories],
        "topServiceCategories": [c.to_dict() for c in analysis.top_service_categories],
        "competitorAnalysis": [c.to_dict() for c in analysis.competitor_analysis],
        "reactivationByChurnCategory": [
            c.to_dict() for c in analysis.reactivation_by_churn_category
        ],
    }


def _category_lines(items: list[dict[str, Any]]) -> str:
    return "\n".join(
        f"- {c['category']}: {c['count']} ({c['percentage']:.1f}%)" for c in items
    )


def build_churn_prompt(payload: dict[str, Any]) -> str:
    competitors = "\n".join(
        f"- {c['competitor']}: {c['count']} churns, ${c['totalMRR']:.0f} total MRR, "
        f"${c['averagePrice']:.0f} avg price"
        for c in payload["competitorAnalysis"]
    )
    correlations = "\n".join(
        f"- {r['churnCategory']}: {r['reactivationRate']:.1f}% reactivation rate, "
        f"{r['averageDaysToReactivation']:.0f} days avg"
        for r in payload["reactivationByChurnCategory"]
    )
    return (
        "You are a business analyst specializing in customer churn analysis. "
        "Analyze the following churn data and provide actionable insights:\n\n"
        f"Total Churns: {payload['totalChurns']}\n"
        f"Average Reactivation Time: {float(payload['averageReactivationDays']):.1f} days\n\n"
        f"Top Churn Categories:\n{_category_lines(payload['topChurnCategories'])}\n\n"
        f"Top Service Categories:\n{_category_lines(payload['topServiceCategories'])}\n\n"
        f"Competitor Analysis:\n{competitors}\n\n"
        f"Reactivation Correlation:\n{correlations}\n\n"
        "Please provide:\n"
        "1. An executive summary\n"
        "2. Key insights about churn patterns\n"
        "3. Analysis of which churn categories are most likely to return\n"
        "4. Competitor threat assessment\n"
        "5. Recommendations to reduce churn and improve reactivation rates\n\n"
        "Format your response in clear sections with bullet points for easy reading."
    )


def build_feedback_prompt(records: Iterable[ChurnRecord]) -> str | None:
    """Prompt over raw feedback text, or None when no record has feedback."""
    with_feedback = [r for r in records if r.feedback and r.feedback.strip()]
    if not with_feedback:
        return None
    lines = "\n\n".join(
        f"{i}. [{r.churn_category}] {r.feedback}" for i, r in enumerate(with_feedback, start=1)
    )
    return (
        "Analyze the following customer feedback from churned clients and provide "
        "actionable product improvement recommendations:\n\n"
        f"Feedback Data:\n{lines}\n\n"
        "Please provide:\n"
        "1. Common themes in the feedback\n"
        "2. Most critical product issues mentioned\n"
        "3. Feature requests or gaps identified\n"
        "4. Prioritized recommendations for the product team\n"
        "5. Quick wins vs long-term improvements\n\n"
        "Format your response with clear sections and bullet points."
    )


def _generate(generator: TextGenerator, prompt: str) -> str:
    try:
        return generator.generate(prompt)
    except Exception as e:
        logger.error("Narrative service failed: %s", e)
        raise UpstreamFetchError("narrative service", e) from e


def generate_churn_insights(generator: TextGenerator, analysis: ChurnAnalysis) -> str:
    return _generate(generator, build_churn_prompt(build_insights_payload(analysis)))


def generate_feedback_insights(generator: TextGenerator, records: Iterable[ChurnRecord]) -> str:
    prompt = build_feedback_prompt(records)
    if prompt is None:
        return NO_FEEDBACK_MESSAGE
    return _generate(generator, prompt)
