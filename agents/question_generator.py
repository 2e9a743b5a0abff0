"""LLM-backed interview question generator."""
from __future__ import annotations

from typing import List, Optional

from pydantic import ValidationError

from agents.common import call_model
from agents.types import AnswerAnalysis, InterviewContext, Question
from config.registry import GENERATOR_KEY
from config.settings import settings
from services.errors import CollaboratorUnavailable


def generate(
    context: InterviewContext,
    *,
    previous_questions: Optional[List[str]] = None,
    last_answer: Optional[str] = None,
    last_analysis: Optional[AnswerAnalysis] = None,
) -> Question:
    """Ask the generator for the question at ``context.question_index``.

    Raises:
        CollaboratorUnavailable: the model failed, timed out or replied off-schema.
    """

    inputs = {
        "candidate_name": context.candidate_name,
        "position": context.position,
        "question_number": context.question_index + 1,
        "max_questions": context.max_questions,
        "previous_questions": list(previous_questions or []),
    }
    if last_answer is not None:
        inputs["last_answer"] = last_answer
    if last_analysis is not None:
        inputs["last_analysis"] = {
            "confidence": last_analysis.confidence,
            "relevance": last_analysis.relevance,
            "emotion": last_analysis.emotion_label,
        }
    raw = call_model(
        GENERATOR_KEY,
        system_prompt_path="prompts/question_generator.txt",
        inputs=inputs,
        timeout_s=settings.GENERATOR_TIMEOUT_S,
        temperature=0.4,
        max_tokens=300,
    )
    try:
        return Question.model_validate(raw)
    except ValidationError as exc:
        raise CollaboratorUnavailable("generator reply did not match schema") from exc


__all__ = ["generate"]
