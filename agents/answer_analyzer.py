"""LLM-backed answer analysis with a neutral fallback."""
from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from agents.common import call_model
from agents.types import AnswerAnalysis, Question, SensorMetadata, unique_flags
from config.registry import ANALYZER_KEY
from config.settings import settings
from services.errors import CollaboratorUnavailable

NEUTRAL_ANALYSIS = AnswerAnalysis(
    confidence=0.7,
    relevance=0.8,
    emotion_label="neutral",
    integrity_flags=[],
    suggestions=["Provide more specific examples", "Elaborate on your role"],
)


def analyze(question: Question, answer: str, sensor_metadata: Optional[SensorMetadata] = None) -> AnswerAnalysis:
    """Analyze one answer.

    Flags reported by the capture layer are merged into the model's flags, and the
    detected emotion is used when the model does not name one.

    Raises:
        CollaboratorUnavailable: the model failed, timed out or replied off-schema.
    """

    sensors = sensor_metadata or SensorMetadata()
    raw = call_model(
        ANALYZER_KEY,
        system_prompt_path="prompts/answer_analyzer.txt",
        inputs={
            "question": question.text,
            "category": question.category,
            "answer": answer,
            "sensor_metadata": sensors.model_dump(exclude_none=True),
        },
        timeout_s=settings.ANALYZER_TIMEOUT_S,
        temperature=0.0,
        max_tokens=500,
    )
    try:
        analysis = AnswerAnalysis.model_validate(raw)
    except ValidationError as exc:
        raise CollaboratorUnavailable("analyzer reply did not match schema") from exc

    update = {}
    if sensors.integrity and sensors.integrity.flags:
        update["integrity_flags"] = unique_flags([*analysis.integrity_flags, *sensors.integrity.flags])
    if sensors.emotion and isinstance(raw, dict) and "emotion_label" not in raw:
        update["emotion_label"] = sensors.emotion.primary_emotion
    return analysis.model_copy(update=update) if update else analysis


__all__ = ["NEUTRAL_ANALYSIS", "analyze"]
