"""FastAPI routes for subscriptions and interview sessions."""
from __future__ import annotations

import re
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Response

from api.schemas import (
    AnswerReq,
    AnswerResp,
    CancelReq,
    CancelResp,
    InterviewSummary,
    OpenSubscriptionReq,
    StartReq,
    StartResp,
)
from services.interview_machine import Completed, InterviewStateMachine
from services.models import Interview, Report, Subscription

router = APIRouter(prefix="/api")

_machine: Optional[InterviewStateMachine] = None


def get_machine() -> InterviewStateMachine:
    global _machine
    if _machine is None:
        _machine = InterviewStateMachine()
    return _machine


def owner_id(x_owner_id: str = Header(..., min_length=1)) -> str:
    return x_owner_id


def _safe_slug(value: str) -> str:  # Sanitize value for filenames
    slug = re.sub(r"[^a-z0-9]+", "-", (value or "").lower())
    return re.sub(r"-+", "-", slug).strip("-")


@router.post("/subscriptions", response_model=Subscription, status_code=201)
def open_subscription(
    req: OpenSubscriptionReq,
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> Subscription:
    return machine.ledger.open_subscription(owner, req.plan_id)


@router.get("/subscriptions", response_model=List[Subscription])
def list_subscriptions(
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> List[Subscription]:
    return machine.ledger.list_for_owner(owner)


@router.post("/interviews/start", response_model=StartResp)
def start_interview(
    req: StartReq,
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> StartResp:
    result = machine.start(owner, req.candidate_name, req.position, req.max_questions)
    return StartResp(
        interview_id=result.interview.id,
        session_token=result.session.token,
        first_question=result.question,
    )


@router.post("/interviews/answer", response_model=AnswerResp, response_model_exclude_none=True)
def submit_answer(req: AnswerReq, machine: InterviewStateMachine = Depends(get_machine)) -> AnswerResp:
    outcome = machine.submit_answer(req.session_token, req.answer_text, req.sensor_metadata)
    if isinstance(outcome, Completed):
        return AnswerResp(completed=True, report_id=outcome.report_id)
    return AnswerResp(next_question=outcome.question)


@router.post("/interviews/cancel", response_model=CancelResp)
def cancel_interview(req: CancelReq, machine: InterviewStateMachine = Depends(get_machine)) -> CancelResp:
    result = machine.cancel(req.session_token)
    return CancelResp(refunded=result.refunded)


@router.get("/interviews", response_model=List[InterviewSummary])
def list_interviews(
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> List[InterviewSummary]:
    return [InterviewSummary.from_interview(item) for item in machine.list_interviews(owner)]


@router.get("/interviews/{interview_id}", response_model=Interview)
def get_interview(
    interview_id: str,
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> Interview:
    return machine.get_interview(interview_id, owner)


@router.get("/interviews/{interview_id}/report", response_model=Report)
def get_report(
    interview_id: str,
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> Report:
    return machine.get_report(interview_id, owner)


@router.get("/interviews/{interview_id}/report.pdf")
def get_report_pdf(
    interview_id: str,
    owner: str = Depends(owner_id),
    machine: InterviewStateMachine = Depends(get_machine),
) -> Response:
    interview = machine.get_interview(interview_id, owner)
    payload = machine.render_report_pdf(interview_id, owner)
    filename = f"{interview_id}-{_safe_slug(interview.candidate_name) or 'candidate'}-report.pdf"
    headers = {"Content-Disposition": f"attachment; filename=\"{filename}\""}
    return Response(content=payload, media_type="application/pdf", headers=headers)
