"""Domain records owned by the orchestration core."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from agents.types import AnswerAnalysis, Flag, Question

SubscriptionStatus = Literal["active", "expired", "cancelled"]
InterviewStatus = Literal["pending", "in_progress", "completed", "cancelled"]
SessionStatus = Literal["active", "completed", "cancelled"]
Role = Literal["assistant", "candidate"]

TERMINAL_STATUSES = frozenset({"completed", "cancelled"})


def utc_now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="microseconds")


class Subscription(BaseModel):
    id: str
    owner_id: str
    plan_id: str
    plan_name: str
    interviews_remaining: int = Field(ge=0)
    total_interviews: int = Field(ge=0)
    status: SubscriptionStatus
    expires_at: Optional[str] = None
    created_at: str
    updated_at: str


class Message(BaseModel):
    id: str
    interview_id: str
    sequence: int
    role: Role
    content: str
    analysis: Optional[AnswerAnalysis] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str


class Interview(BaseModel):
    id: str
    owner_id: str
    subscription_id: str
    candidate_name: str
    position: str
    status: InterviewStatus
    question_index: int = 0
    max_questions: int = 5
    transcript: List[Message] = Field(default_factory=list)
    overall_score: Optional[float] = None
    integrity_flags: List[Flag] = Field(default_factory=list)
    started_at: str
    ended_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def awaiting_answer(self) -> bool:
        """True when the last transcript entry is an unanswered question."""
        return bool(self.transcript) and self.transcript[-1].role == "assistant"

    def questions(self) -> List[Message]:
        return [m for m in self.transcript if m.role == "assistant"]

    def answers(self) -> List[Message]:
        return [m for m in self.transcript if m.role == "candidate"]

    def pending_question(self) -> Optional[Question]:
        if not self.awaiting_answer:
            return None
        last = self.transcript[-1]
        return Question(text=last.content, **last.metadata)


class Session(BaseModel):
    token: str
    interview_id: str
    status: SessionStatus
    current_question_index: int = 0
    created_at: str
    last_activity_at: str
    closed_at: Optional[str] = None


class Report(BaseModel):
    id: str
    interview_id: str
    overall_score: float
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    integrity_flags: List[Flag] = Field(default_factory=list)
    total_questions: int = 0
    generated_at: str


def shift(timestamp: str, *, seconds: float = 0, days: int = 0) -> str:
    """Offset an ISO timestamp produced by :func:`utc_now`."""

    moment = dt.datetime.fromisoformat(timestamp) + dt.timedelta(seconds=seconds, days=days)
    return moment.isoformat(timespec="microseconds")
