"""Interview lifecycle: start, answer, complete, cancel and their races."""
from __future__ import annotations

import sqlite3
import threading
import time

import pytest

import storage.interviews
from agents.answer_analyzer import NEUTRAL_ANALYSIS
from agents.summarizer import FALLBACK_SUMMARY
from config.registry import ANALYZER_KEY, bind_model
from services.errors import (
    AnswerConflict,
    InterviewTerminal,
    InvalidToken,
    NotFound,
    QuotaExhausted,
    StateConflict,
    StorageFailure,
    ValidationFailed,
)
from services.interview_machine import Completed, InterviewStateMachine, sources_of
from services.models import shift, utc_now
from services.report_compiler import ReportCompiler
from services.sequencer import FIRST_FALLBACK, NEXT_FALLBACK, Ask, QuestionSequencer
from storage.reports import count_reports
from storage.sqlite import get_conn

OWNER = "owner-1"


def _run(machine, max_questions=3):
    return machine.start(OWNER, "Ada Lovelace", "Backend Engineer", max_questions)


def test_start_opens_interview_with_first_question(machine, subscription, fake_models):
    result = _run(machine)
    assert result.question.text == "Generated question 1"
    assert result.session.status == "active"

    interview = machine.get_interview(result.interview.id, OWNER)
    assert interview.status == "in_progress"
    assert interview.question_index == 0
    assert interview.subscription_id == subscription.id
    assert [m.role for m in interview.transcript] == ["assistant"]
    assert interview.transcript[0].metadata == {"category": "technical", "difficulty": "medium", "time_limit_s": 120}
    assert machine.ledger.get(subscription.id).interviews_remaining == 9


def test_start_without_quota_creates_nothing(machine, ledger):
    ledger.open_subscription(OWNER, "free-trial")
    _run(machine)
    with pytest.raises(QuotaExhausted):
        _run(machine)
    assert len(machine.list_interviews(OWNER)) == 1


def test_start_validates_before_consuming(machine, subscription):
    with pytest.raises(ValidationFailed):
        _run(machine, max_questions=0)
    with pytest.raises(ValidationFailed):
        machine.start(OWNER, "  ", "Engineer")
    assert machine.ledger.get(subscription.id).interviews_remaining == 10


def test_start_refunds_when_persisting_fails(machine, subscription, monkeypatch):
    def broken(conn, **data):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(storage.interviews, "insert_interview", broken)
    with pytest.raises(StorageFailure):
        _run(machine)
    assert machine.ledger.get(subscription.id).interviews_remaining == 10
    assert machine.list_interviews(OWNER) == []


def test_generator_outage_uses_fallback_first_question(machine, subscription):
    result = _run(machine)
    assert result.question == FIRST_FALLBACK


def test_full_interview_completes_with_one_report(machine, subscription, fake_models):
    result = _run(machine, max_questions=3)
    token = result.session.token

    first = machine.submit_answer(token, "I built a billing service.")
    second = machine.submit_answer(token, "We sharded the database.")
    assert isinstance(first, Ask) and first.question.text == "Generated question 2"
    assert isinstance(second, Ask) and second.question.text == "Generated question 3"

    done = machine.submit_answer(token, "I would add more tests.")
    assert isinstance(done, Completed)

    interview = machine.get_interview(result.interview.id, OWNER)
    assert interview.status == "completed"
    assert interview.question_index == 3
    assert interview.ended_at is not None
    assert interview.overall_score == 80.0
    assert [m.role for m in interview.transcript] == ["assistant", "candidate"] * 3
    assert [m.sequence for m in interview.transcript] == list(range(6))

    report = machine.get_report(interview.id, OWNER)
    assert report.id == done.report_id
    assert report.total_questions == 3
    assert report.summary == "Solid, specific answers."
    assert machine.sessions.lookup(token).status == "completed"
    assert machine.ledger.get(subscription.id).interviews_remaining == 9
    assert fake_models["generator"] == 3
    assert fake_models["summarizer"] == 1


def test_terminal_interview_rejects_further_input(machine, subscription, fake_models):
    result = _run(machine, max_questions=1)
    token = result.session.token
    assert isinstance(machine.submit_answer(token, "only answer"), Completed)

    with pytest.raises(InterviewTerminal):
        machine.submit_answer(token, "one more")
    with pytest.raises(InterviewTerminal):
        machine.cancel(token)

    interview = machine.get_interview(result.interview.id, OWNER)
    assert len(interview.transcript) == 2
    with get_conn(immediate=False) as conn:
        assert count_reports(conn, interview.id) == 1


def test_unknown_token_is_invalid(machine):
    with pytest.raises(InvalidToken):
        machine.submit_answer("forged", "answer")
    with pytest.raises(InvalidToken):
        machine.cancel("forged")


def test_empty_answer_is_rejected(machine, subscription):
    token = _run(machine).session.token
    with pytest.raises(ValidationFailed):
        machine.submit_answer(token, "   ")


def test_analyzer_outage_records_neutral_analysis(machine, subscription):
    def broken(**_):
        raise RuntimeError("upstream 500")

    bind_model(ANALYZER_KEY, broken)
    result = _run(machine)
    outcome = machine.submit_answer(result.session.token, "An answer")
    assert isinstance(outcome, Ask)

    interview = machine.get_interview(result.interview.id, OWNER)
    assert interview.question_index == 1
    assert interview.answers()[0].analysis == NEUTRAL_ANALYSIS


def test_cancel_before_first_answer_refunds(machine, subscription):
    result = _run(machine)
    outcome = machine.cancel(result.session.token)
    assert outcome.refunded is True
    assert machine.ledger.get(subscription.id).interviews_remaining == 10
    assert machine.get_interview(result.interview.id, OWNER).status == "cancelled"
    assert machine.sessions.lookup(result.session.token).status == "cancelled"

    with pytest.raises(InterviewTerminal):
        machine.cancel(result.session.token)
    assert machine.ledger.get(subscription.id).interviews_remaining == 10


def test_cancel_after_an_answer_keeps_the_unit(machine, subscription, fake_models):
    result = _run(machine)
    machine.submit_answer(result.session.token, "An answer")
    assert machine.cancel(result.session.token).refunded is False
    assert machine.ledger.get(subscription.id).interviews_remaining == 9
    with get_conn(immediate=False) as conn:
        assert count_reports(conn, result.interview.id) == 0


def test_concurrent_duplicate_answers_advance_once(machine, subscription):
    def slow_analyzer(**_):
        time.sleep(0.2)
        return {"confidence": 0.9, "relevance": 0.9}

    bind_model(ANALYZER_KEY, slow_analyzer)
    result = _run(machine, max_questions=3)
    barrier = threading.Barrier(2)
    outcomes = []

    def submit():
        barrier.wait()
        try:
            outcomes.append(machine.submit_answer(result.session.token, "same answer"))
        except AnswerConflict as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(isinstance(o, Ask) for o in outcomes) == 1
    assert sum(isinstance(o, AnswerConflict) for o in outcomes) == 1
    interview = machine.get_interview(result.interview.id, OWNER)
    assert interview.question_index == 1
    assert len(interview.answers()) == 1


def test_concurrent_final_answers_produce_one_report(machine, subscription):
    def slow_analyzer(**_):
        time.sleep(0.2)
        return {"confidence": 0.9, "relevance": 0.9}

    bind_model(ANALYZER_KEY, slow_analyzer)
    result = _run(machine, max_questions=1)
    barrier = threading.Barrier(2)
    outcomes = []

    def submit():
        barrier.wait()
        try:
            outcomes.append(machine.submit_answer(result.session.token, "final"))
        except StateConflict as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(isinstance(o, Completed) for o in outcomes) == 1
    with get_conn(immediate=False) as conn:
        assert count_reports(conn, result.interview.id) == 1


def test_cancel_racing_an_answer_leaves_one_terminal_state(machine, subscription):
    def slow_analyzer(**_):
        time.sleep(0.2)
        return {"confidence": 0.9, "relevance": 0.9}

    bind_model(ANALYZER_KEY, slow_analyzer)
    result = _run(machine, max_questions=1)
    errors = []

    def answer():
        try:
            machine.submit_answer(result.session.token, "final")
        except StateConflict as exc:
            errors.append(exc)

    worker = threading.Thread(target=answer)
    worker.start()
    time.sleep(0.05)
    machine.cancel(result.session.token)
    worker.join()

    interview = machine.get_interview(result.interview.id, OWNER)
    assert interview.status == "cancelled"
    assert isinstance(errors[0], InterviewTerminal)
    with get_conn(immediate=False) as conn:
        assert count_reports(conn, interview.id) == 0


def test_reads_are_scoped_to_owner(machine, subscription, fake_models):
    result = _run(machine)
    with pytest.raises(NotFound):
        machine.get_interview(result.interview.id, "someone-else")
    with pytest.raises(NotFound):
        machine.get_report(result.interview.id, OWNER)
    assert [i.id for i in machine.list_interviews(OWNER)] == [result.interview.id]
    assert machine.list_interviews("someone-else") == []


def test_reaper_cancels_idle_interviews(machine, subscription):
    result = _run(machine)
    with get_conn() as conn:
        conn.execute(
            "UPDATE sessions SET last_activity_at = ? WHERE token = ?",
            (shift(utc_now(), seconds=-600), result.session.token),
        )
    reaped = machine.reap_idle(300)
    assert [r.interview_id for r in reaped] == [result.interview.id]
    assert reaped[0].refunded is True
    assert machine.reap_idle(300) == []
    with pytest.raises(InterviewTerminal):
        machine.submit_answer(result.session.token, "too late")


def test_default_length_interview_completes_on_fifth_answer(machine, subscription, fake_models):
    result = machine.start(OWNER, "Ada Lovelace", "Backend Engineer")
    token = result.session.token

    steps = [machine.submit_answer(token, f"Answer {n}") for n in range(1, 6)]
    assert all(isinstance(step, Ask) for step in steps[:4])
    assert isinstance(steps[4], Completed)

    interview = machine.get_interview(result.interview.id, OWNER)
    assert interview.status == "completed"
    assert interview.max_questions == 5
    assert interview.question_index == 5
    assert machine.get_report(interview.id, OWNER).total_questions == 5
    assert machine.ledger.get(subscription.id).interviews_remaining == 9


def test_analyzer_failure_on_third_answer_keeps_going(machine, subscription):
    calls = []

    def flaky(**_):
        calls.append(1)
        if len(calls) == 3:
            raise RuntimeError("upstream 500")
        return {"confidence": 0.9, "relevance": 0.9}

    bind_model(ANALYZER_KEY, flaky)
    result = machine.start(OWNER, "Ada Lovelace", "Backend Engineer")
    token = result.session.token
    machine.submit_answer(token, "first")
    machine.submit_answer(token, "second")
    third = machine.submit_answer(token, "third")
    assert third == Ask(NEXT_FALLBACK)

    analyses = [m.analysis for m in machine.get_interview(result.interview.id, OWNER).answers()]
    assert analyses[2] == NEUTRAL_ANALYSIS
    assert [a.confidence for a in analyses[:2]] == [0.9, 0.9]


def test_interview_keeps_only_high_severity_flags(machine, subscription):
    bind_model(
        ANALYZER_KEY,
        lambda **_: {
            "confidence": 0.8,
            "relevance": 0.8,
            "integrity_flags": [
                {"type": "glance", "severity": "low"},
                {"type": "tab_switch", "severity": "high"},
            ],
        },
    )
    result = _run(machine, max_questions=1)
    machine.submit_answer(result.session.token, "only answer")

    interview = machine.get_interview(result.interview.id, OWNER)
    assert [flag.key for flag in interview.integrity_flags] == [("tab_switch", "high")]
    assert machine.get_report(interview.id, OWNER).integrity_flags == interview.integrity_flags


def test_injected_collaborators_that_raise_use_defaults(ledger, subscription):
    def boom(*args, **kwargs):
        raise RuntimeError("upstream")

    machine = InterviewStateMachine(
        ledger=ledger,
        sequencer=QuestionSequencer(boom),
        compiler=ReportCompiler(boom),
        analyze=boom,
    )
    result = _run(machine, max_questions=2)
    assert result.question == FIRST_FALLBACK
    assert machine.submit_answer(result.session.token, "first") == Ask(NEXT_FALLBACK)
    done = machine.submit_answer(result.session.token, "second")
    assert isinstance(done, Completed)
    assert done.report.summary == FALLBACK_SUMMARY.summary

    interview = machine.get_interview(result.interview.id, OWNER)
    assert all(m.analysis == NEUTRAL_ANALYSIS for m in interview.answers())


def test_concurrent_starts_never_overdraw(machine, subscription):
    barrier = threading.Barrier(11)
    outcomes = []
    guard = threading.Lock()

    def worker():
        barrier.wait()
        try:
            _run(machine)
            result = "ok"
        except QuotaExhausted:
            result = "exhausted"
        with guard:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(11)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 10
    assert outcomes.count("exhausted") == 1
    assert machine.ledger.get(subscription.id).interviews_remaining == 0
    assert len(machine.list_interviews(OWNER)) == 10


def test_transition_table_is_one_way():
    assert sources_of("in_progress") == ["pending"]
    assert sources_of("completed") == ["in_progress"]
    assert sources_of("cancelled") == ["pending", "in_progress"]
    assert sources_of("pending") == []
