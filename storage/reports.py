"""Persistence helpers for compiled interview reports."""
from __future__ import annotations

import json
import sqlite3
from typing import List, Optional

from pydantic import TypeAdapter

from agents.types import Flag
from services.models import Report

_COLUMNS = (
    "id, interview_id, overall_score, summary, strengths, weaknesses, recommendations, "
    "integrity_flags, total_questions, generated_at"
)

_STRINGS = TypeAdapter(List[str])
_FLAGS = TypeAdapter(List[Flag])


def insert_report(conn: sqlite3.Connection, report: Report) -> None:
    """Insert a report; the unique interview_id column rejects a second one."""

    conn.execute(
        f"INSERT INTO reports ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            report.id,
            report.interview_id,
            report.overall_score,
            report.summary,
            json.dumps(report.strengths),
            json.dumps(report.weaknesses),
            json.dumps(report.recommendations),
            json.dumps([flag.model_dump() for flag in report.integrity_flags]),
            report.total_questions,
            report.generated_at,
        ),
    )


def _row(row: sqlite3.Row) -> Report:
    return Report(
        id=row["id"],
        interview_id=row["interview_id"],
        overall_score=row["overall_score"],
        summary=row["summary"],
        strengths=_STRINGS.validate_json(row["strengths"]),
        weaknesses=_STRINGS.validate_json(row["weaknesses"]),
        recommendations=_STRINGS.validate_json(row["recommendations"]),
        integrity_flags=_FLAGS.validate_json(row["integrity_flags"]),
        total_questions=row["total_questions"],
        generated_at=row["generated_at"],
    )


def get_report(conn: sqlite3.Connection, report_id: str) -> Optional[Report]:
    row = conn.execute(f"SELECT {_COLUMNS} FROM reports WHERE id = ?", (report_id,)).fetchone()
    return _row(row) if row else None


def get_report_for_interview(conn: sqlite3.Connection, interview_id: str) -> Optional[Report]:
    row = conn.execute(f"SELECT {_COLUMNS} FROM reports WHERE interview_id = ?", (interview_id,)).fetchone()
    return _row(row) if row else None


def count_reports(conn: sqlite3.Connection, interview_id: str) -> int:
    return int(
        conn.execute("SELECT COUNT(*) FROM reports WHERE interview_id = ?", (interview_id,)).fetchone()[0]
    )
