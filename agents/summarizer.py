"""LLM-backed interview summarizer."""
from __future__ import annotations

from typing import List, Sequence, Tuple

from pydantic import ValidationError

from agents.common import call_model
from agents.types import AnswerAnalysis, SummaryResult
from config.registry import SUMMARIZER_KEY
from config.settings import settings
from services.errors import CollaboratorUnavailable

FALLBACK_SUMMARY = SummaryResult(
    summary=(
        "The candidate demonstrated good communication skills and relevant experience, "
        "but could benefit from providing more specific examples."
    ),
    strengths=["Good communication skills", "Relevant experience"],
    weaknesses=["Could provide more specific examples"],
    recommendations=["Consider providing more detailed examples", "Practice technical questions"],
)


def summarize(
    position: str,
    exchanges: Sequence[Tuple[str, str, AnswerAnalysis]],
) -> SummaryResult:
    """Summarize (question, answer, analysis) triples into strengths and weaknesses.

    Raises:
        CollaboratorUnavailable: the model failed, timed out or replied off-schema.
    """

    transcript: List[dict] = [
        {
            "question": question,
            "answer": answer,
            "confidence": analysis.confidence,
            "relevance": analysis.relevance,
        }
        for question, answer, analysis in exchanges
    ]
    raw = call_model(
        SUMMARIZER_KEY,
        system_prompt_path="prompts/summarizer.txt",
        inputs={"position": position, "transcript": transcript},
        timeout_s=settings.SUMMARIZER_TIMEOUT_S,
        temperature=0.2,
        max_tokens=800,
    )
    try:
        return SummaryResult.model_validate(raw)
    except ValidationError as exc:
        raise CollaboratorUnavailable("summarizer reply did not match schema") from exc


__all__ = ["FALLBACK_SUMMARY", "summarize"]
