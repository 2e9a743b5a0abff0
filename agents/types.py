"""Structured payloads exchanged with the AI collaborators."""
from typing import Dict, Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["low", "medium", "high"]
Level = Literal["low", "medium", "high"]


class Flag(BaseModel):
    """Integrity signal; two flags are the same flag when type and severity match."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1)
    severity: Severity
    description: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.type, self.severity)


def unique_flags(flags: Iterable[Flag]) -> List[Flag]:
    """Drop repeated flags, keeping first-seen order."""

    seen: Dict[Tuple[str, str], Flag] = {}
    for flag in flags:
        seen.setdefault(flag.key, flag)
    return list(seen.values())


class EmotionReading(BaseModel):
    model_config = ConfigDict(extra="forbid")

    primary_emotion: str = "neutral"
    stress_level: Level = "low"
    engagement: Level = "medium"
    confidence: Level = "medium"


class IntegrityReading(BaseModel):
    model_config = ConfigDict(extra="forbid")

    flags: List[Flag] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class SensorMetadata(BaseModel):
    """Output of the capture layer (emotion and proctoring detectors)."""

    model_config = ConfigDict(extra="forbid")

    emotion: Optional[EmotionReading] = None
    integrity: Optional[IntegrityReading] = None


class AnswerAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence: float = Field(ge=0.0, le=1.0)
    relevance: float = Field(ge=0.0, le=1.0)
    emotion_label: str = "neutral"
    integrity_flags: List[Flag] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("integrity_flags")
    @classmethod
    def _dedupe(cls, value: List[Flag]) -> List[Flag]:
        return unique_flags(value)


class Question(BaseModel):
    text: str = Field(min_length=1)
    category: str = "general"
    difficulty: str = "medium"
    time_limit_s: int = Field(default=120, ge=1)


class SummaryResult(BaseModel):
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    overall_score: Optional[float] = None


class InterviewContext(BaseModel):
    """What the question generator knows about the interview being run."""

    interview_id: str = ""
    candidate_name: str
    position: str
    question_index: int = Field(ge=0)
    max_questions: int = Field(ge=1)
