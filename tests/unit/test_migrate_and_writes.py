"""Schema constraints backing the orchestration invariants."""
from __future__ import annotations

import os
import sqlite3

import pytest

from services.errors import StorageFailure
from services.models import Report, utc_now
from storage.interviews import advance_index, get_interview, insert_interview, transition
from storage.messages import append_message, count_messages
from storage.migrate import migrate
from storage.reports import count_reports, insert_report
from storage.sessions import insert_session
from storage.sqlite import get_conn
from storage.subscriptions import decrement_if_available, insert_subscription


def _seed(conn):
    now = utc_now()
    insert_subscription(
        conn, id="sub", owner_id="o", plan_id="starter", plan_name="Starter", total_interviews=1, created_at=now
    )
    insert_interview(
        conn,
        id="iv",
        owner_id="o",
        subscription_id="sub",
        candidate_name="Ada",
        position="Engineer",
        max_questions=1,
        started_at=now,
    )


def test_migrate_is_idempotent(tmp_db):
    migrate(tmp_db)
    assert os.path.exists(tmp_db)


def test_failed_transaction_leaves_no_partial_state():
    with pytest.raises(StorageFailure):
        with get_conn() as conn:
            _seed(conn)
            conn.execute("INSERT INTO missing_table VALUES (1)")
    with get_conn(immediate=False) as conn:
        assert get_interview(conn, "iv") is None


def test_quota_cannot_go_negative():
    with get_conn() as conn:
        _seed(conn)
        assert decrement_if_available(conn, "sub", utc_now()) is True
        assert decrement_if_available(conn, "sub", utc_now()) is False


def test_one_active_session_per_interview():
    with get_conn() as conn:
        _seed(conn)
        insert_session(conn, "t1", "iv", utc_now())
        with pytest.raises(sqlite3.IntegrityError):
            insert_session(conn, "t2", "iv", utc_now())


def test_messages_are_sequenced_per_interview():
    with get_conn() as conn:
        _seed(conn)
        first = append_message(conn, "iv", "assistant", "Q1", metadata={"category": "general"})
        second = append_message(conn, "iv", "candidate", "A1")
        assert (first.sequence, second.sequence) == (0, 1)
        assert count_messages(conn, "iv") == 2


def test_question_index_cannot_pass_the_limit():
    with get_conn() as conn:
        _seed(conn)
        assert transition(conn, "iv", ["pending"], "in_progress") is True
        assert advance_index(conn, "iv", 0) is True
        assert advance_index(conn, "iv", 0) is False
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("UPDATE interviews SET question_index = 2 WHERE id = 'iv'")


def test_single_report_per_interview():
    report = Report(id="r1", interview_id="iv", overall_score=75.0, generated_at=utc_now())
    with get_conn() as conn:
        _seed(conn)
        insert_report(conn, report)
    with pytest.raises(StorageFailure):
        with get_conn() as conn:
            insert_report(conn, report.model_copy(update={"id": "r2"}))
    with get_conn(immediate=False) as conn:
        assert count_reports(conn, "iv") == 1
