"""Interview lifecycle orchestration.

States move one way only::

    pending -> in_progress -> completed
    pending -> cancelled
    in_progress -> cancelled

Collaborator calls (analysis, question generation, summarization) are never made
while a database transaction is open. The per-interview lock serializes
transitions inside one process; the conditional UPDATEs in ``storage.interviews``
keep several processes sharing one database correct as well.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Union

from agents import answer_analyzer
from agents.types import AnswerAnalysis, InterviewContext, Question, SensorMetadata
from config.settings import settings
from observability import log_event, span
from services.errors import (
    AnswerConflict,
    InterviewTerminal,
    InvalidToken,
    NotFound,
    StateConflict,
    StorageFailure,
    ValidationFailed,
)
from services.ledger import Ledger
from services.locks import forget, lock_for
from services.models import Interview, Message, Report, Session, utc_now
from services.report_compiler import ReportCompiler
from services.sequencer import Ask, Complete, QuestionSequencer
from services.session_registry import SessionRegistry
from storage import interviews as interview_store
from storage import messages as message_store
from storage import reports as report_store
from storage import sessions as session_store
from storage.sqlite import get_conn

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"in_progress", "cancelled"}),
    "in_progress": frozenset({"completed", "cancelled"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}


def sources_of(target: str) -> List[str]:
    """States from which ``target`` may be entered."""

    return [state for state, targets in TRANSITIONS.items() if target in targets]


@dataclass(frozen=True)
class StartResult:
    interview: Interview
    session: Session
    question: Question


@dataclass(frozen=True)
class Completed:
    report: Report

    @property
    def report_id(self) -> str:
        return self.report.id


@dataclass(frozen=True)
class CancelResult:
    interview_id: str
    refunded: bool


AnswerOutcome = Union[Ask, Completed]


def _question_metadata(question: Question) -> dict:
    return {"category": question.category, "difficulty": question.difficulty, "time_limit_s": question.time_limit_s}


def _require_text(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationFailed(f"{field} must not be empty")
    return cleaned


class InterviewStateMachine:
    def __init__(
        self,
        ledger: Optional[Ledger] = None,
        sessions: Optional[SessionRegistry] = None,
        sequencer: Optional[QuestionSequencer] = None,
        compiler: Optional[ReportCompiler] = None,
        analyze: Optional[Callable[..., AnswerAnalysis]] = None,
    ) -> None:
        self.ledger = ledger or Ledger()
        self.sessions = sessions or SessionRegistry()
        self.sequencer = sequencer or QuestionSequencer()
        self.compiler = compiler or ReportCompiler()
        self._analyze = analyze or answer_analyzer.analyze

    def start(
        self,
        owner_id: str,
        candidate_name: str,
        position: str,
        max_questions: Optional[int] = None,
    ) -> StartResult:
        """Consume one unit of quota and open a new interview with its first question.

        Nothing is created when the quota is exhausted. If persisting the new
        interview fails, the consumed unit is refunded before the error propagates.
        """

        owner_id = _require_text(owner_id, "owner_id")
        candidate_name = _require_text(candidate_name, "candidate_name")
        position = _require_text(position, "position")
        limit = settings.MAX_QUESTIONS if max_questions is None else max_questions
        if not 1 <= limit <= settings.MAX_QUESTIONS_LIMIT:
            raise ValidationFailed(f"max_questions must be between 1 and {settings.MAX_QUESTIONS_LIMIT}")

        subscription_id = self.ledger.consume_for_owner(owner_id)
        interview_id = uuid.uuid4().hex
        question = self.sequencer.first(
            InterviewContext(
                interview_id=interview_id,
                candidate_name=candidate_name,
                position=position,
                question_index=0,
                max_questions=limit,
            )
        )
        try:
            with get_conn() as conn:
                interview = interview_store.insert_interview(
                    conn,
                    id=interview_id,
                    owner_id=owner_id,
                    subscription_id=subscription_id,
                    candidate_name=candidate_name,
                    position=position,
                    max_questions=limit,
                    started_at=utc_now(),
                )
                interview_store.transition(conn, interview_id, sources_of("in_progress"), "in_progress")
                session = self.sessions.issue(interview_id, conn=conn)
                first = message_store.append_message(
                    conn, interview_id, "assistant", question.text, metadata=_question_metadata(question)
                )
        except StorageFailure as exc:
            refunded = self.ledger.refund(subscription_id)
            log_event("start_failed", interview_id, level=logging.ERROR, refunded=refunded, error=exc.detail)
            raise

        interview = interview.model_copy(update={"status": "in_progress", "transcript": [first]})
        log_event(
            "started",
            interview_id,
            status="in_progress",
            question_index=0,
            max_questions=limit,
            subscription_id=subscription_id,
        )
        return StartResult(interview=interview, session=session, question=question)

    def submit_answer(
        self,
        token: str,
        answer_text: str,
        sensor_metadata: Optional[SensorMetadata] = None,
    ) -> AnswerOutcome:
        """Record the answer to the pending question and move the interview on.

        Returns ``Ask`` with the next question, or ``Completed`` with the report
        once the question limit is reached. A submission that races another one
        for the same question gets ``AnswerConflict``.
        """

        answer_text = _require_text(answer_text, "answer_text")
        session = self._session_for(token)
        interview_id = session.interview_id
        lock = lock_for(interview_id)

        with lock:
            snapshot = self._load(interview_id)
            self._require_answerable(snapshot)
            index = snapshot.question_index
            pending = snapshot.pending_question()
            asked = [message.content for message in snapshot.questions()]

        analysis = self._analysis(interview_id, pending, answer_text, sensor_metadata)
        step = self.sequencer.next(
            InterviewContext(
                interview_id=interview_id,
                candidate_name=snapshot.candidate_name,
                position=snapshot.position,
                question_index=index,
                max_questions=snapshot.max_questions,
            ),
            asked,
            answer_text,
            analysis,
        )

        with lock:
            current = self._load(interview_id)
            self._require_answerable(current)
            if current.question_index != index:
                raise AnswerConflict("the question was already answered")
            if isinstance(step, Complete):
                return self._complete(current, session.token, answer_text, analysis)
            return self._ask(current, session.token, answer_text, analysis, step.question)

    def _ask(
        self, interview: Interview, token: str, answer_text: str, analysis: AnswerAnalysis, question: Question
    ) -> Ask:
        index = interview.question_index
        with get_conn() as conn:
            if not interview_store.advance_index(conn, interview.id, index):
                raise AnswerConflict("the question was already answered")
            message_store.append_message(conn, interview.id, "candidate", answer_text, analysis=analysis)
            message_store.append_message(
                conn, interview.id, "assistant", question.text, metadata=_question_metadata(question)
            )
            session_store.touch(conn, token, utc_now(), question_index=index + 1)
        log_event("answered", interview.id, status="in_progress", question_index=index + 1)
        return Ask(question)

    def _complete(self, interview: Interview, token: str, answer_text: str, analysis: AnswerAnalysis) -> Completed:
        index = interview.question_index
        now = utc_now()
        answer = Message(
            id="",
            interview_id=interview.id,
            sequence=len(interview.transcript),
            role="candidate",
            content=answer_text,
            analysis=analysis,
            created_at=now,
        )
        finished = interview.model_copy(
            update={"transcript": [*interview.transcript, answer], "question_index": index + 1}
        )
        report = self.compiler.compile(finished)

        with get_conn() as conn:
            if not interview_store.advance_index(conn, interview.id, index):
                raise AnswerConflict("the question was already answered")
            message_store.append_message(conn, interview.id, "candidate", answer_text, analysis=analysis)
            if not interview_store.transition(conn, interview.id, sources_of("completed"), "completed", ended_at=now):
                raise InterviewTerminal("interview is no longer in progress")
            interview_store.set_outcome(
                conn,
                interview.id,
                overall_score=report.overall_score,
                integrity_flags=report.integrity_flags,
            )
            report_store.insert_report(conn, report)
            self.sessions.close(token, "completed", conn=conn)
        forget(interview.id)
        log_event(
            "completed",
            interview.id,
            status="completed",
            question_index=index + 1,
            overall_score=report.overall_score,
            report_id=report.id,
        )
        return Completed(report)

    def _analysis(
        self,
        interview_id: str,
        question: Optional[Question],
        answer_text: str,
        sensor_metadata: Optional[SensorMetadata],
    ) -> AnswerAnalysis:
        if question is None:
            return answer_analyzer.NEUTRAL_ANALYSIS
        with span("answer_analyzer", interview_id) as extra:
            try:
                return self._analyze(question, answer_text, sensor_metadata)
            except Exception as exc:  # noqa: BLE001
                extra.update(fallback=True, error=getattr(exc, "detail", None) or repr(exc))
                return answer_analyzer.NEUTRAL_ANALYSIS

    def cancel(self, token: str) -> CancelResult:
        """Cancel an unfinished interview; the unit is refunded if no question was answered."""

        return self._cancel(self._session_for(token), reason="candidate")

    def reap_idle(self, older_than_s: float) -> List[CancelResult]:
        """Cancel every interview whose session has been idle longer than ``older_than_s``."""

        results: List[CancelResult] = []
        for session in self.sessions.find_idle(older_than_s):
            try:
                results.append(self._cancel(session, reason="idle"))
            except StateConflict:
                logger.info("Idle interview %s finished before it could be reaped", session.interview_id)
        return results

    def _cancel(self, session: Session, *, reason: str) -> CancelResult:
        interview_id = session.interview_id
        with lock_for(interview_id):
            with get_conn() as conn:
                interview = interview_store.get_interview(conn, interview_id, with_transcript=False)
                if interview is None:
                    raise NotFound(f"interview {interview_id} not found")
                if interview.is_terminal:
                    raise InterviewTerminal(f"interview is already {interview.status}")
                if not interview_store.transition(
                    conn, interview_id, sources_of("cancelled"), "cancelled", ended_at=utc_now()
                ):
                    raise StateConflict("interview changed state during cancellation")
                self.sessions.close(session.token, "cancelled", conn=conn)
                refunded = False
                if interview.question_index == 0:
                    refunded = self.ledger.refund(interview.subscription_id, conn=conn)
        forget(interview_id)
        log_event(
            "cancelled",
            interview_id,
            status="cancelled",
            question_index=interview.question_index,
            refunded=refunded,
            reason=reason,
        )
        return CancelResult(interview_id=interview_id, refunded=refunded)

    def get_interview(self, interview_id: str, owner_id: str) -> Interview:
        interview = self._load(interview_id)
        if interview.owner_id != owner_id:
            raise NotFound(f"interview {interview_id} not found")
        return interview

    def list_interviews(self, owner_id: str) -> List[Interview]:
        with get_conn(immediate=False) as conn:
            return interview_store.list_for_owner(conn, owner_id)

    def get_report(self, interview_id: str, owner_id: str) -> Report:
        self.get_interview(interview_id, owner_id)
        with get_conn(immediate=False) as conn:
            report = report_store.get_report_for_interview(conn, interview_id)
        if report is None:
            raise NotFound(f"no report for interview {interview_id}")
        return report

    def render_report_pdf(self, interview_id: str, owner_id: str) -> bytes:
        interview = self.get_interview(interview_id, owner_id)
        report = self.get_report(interview_id, owner_id)
        return self.compiler.render_pdf(report, interview)

    def _session_for(self, token: str) -> Session:
        """Validate ``token``; a closed token of a finished interview reports the interview as terminal."""

        try:
            return self.sessions.validate(token)
        except InvalidToken:
            record = self.sessions.lookup(token) if token else None
            if record is not None and record.status != "active":
                interview = self._load(record.interview_id, with_transcript=False)
                if interview.is_terminal:
                    raise InterviewTerminal(f"interview is already {interview.status}") from None
            raise

    def _load(self, interview_id: str, *, with_transcript: bool = True) -> Interview:
        with get_conn(immediate=False) as conn:
            interview = interview_store.get_interview(conn, interview_id, with_transcript=with_transcript)
        if interview is None:
            raise NotFound(f"interview {interview_id} not found")
        return interview

    @staticmethod
    def _require_answerable(interview: Interview) -> None:
        if interview.is_terminal:
            raise InterviewTerminal(f"interview is already {interview.status}")
        if interview.status != "in_progress":
            raise StateConflict(f"interview is {interview.status}")
        if not interview.awaiting_answer:
            raise AnswerConflict("no question is awaiting an answer")


__all__ = [
    "AnswerOutcome",
    "CancelResult",
    "Completed",
    "InterviewStateMachine",
    "StartResult",
    "TRANSITIONS",
    "sources_of",
]
