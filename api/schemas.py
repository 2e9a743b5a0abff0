"""Pydantic schemas for the interview orchestration API."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from agents.types import Question, SensorMetadata
from services.models import Interview, InterviewStatus


class OpenSubscriptionReq(BaseModel):
    plan_id: str = Field(min_length=1)


class StartReq(BaseModel):
    candidate_name: str = Field(min_length=1)
    position: str = Field(min_length=1)
    max_questions: Optional[int] = Field(default=None, ge=1)


class AnswerReq(BaseModel):
    session_token: str = Field(min_length=1)
    answer_text: str = Field(min_length=1)
    sensor_metadata: Optional[SensorMetadata] = None


class CancelReq(BaseModel):
    session_token: str = Field(min_length=1)


class StartResp(BaseModel):
    interview_id: str
    session_token: str
    first_question: Question


class AnswerResp(BaseModel):
    completed: bool = False
    next_question: Optional[Question] = None
    report_id: Optional[str] = None


class CancelResp(BaseModel):
    cancelled: bool = True
    refunded: bool


class InterviewSummary(BaseModel):
    id: str
    candidate_name: str
    position: str
    status: InterviewStatus
    question_index: int
    max_questions: int
    overall_score: Optional[float] = None
    started_at: str
    ended_at: Optional[str] = None

    @classmethod
    def from_interview(cls, interview: Interview) -> "InterviewSummary":
        return cls(**interview.model_dump(include=set(cls.model_fields)))


class ErrorResp(BaseModel):
    error: str
    detail: str
