"""Persistence helpers for interview records."""
from __future__ import annotations

import json
import sqlite3
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, TypeAdapter

from agents.types import Flag
from services.models import Interview

from .messages import list_messages

_COLUMNS = (
    "id, owner_id, subscription_id, candidate_name, position, status, question_index, "
    "max_questions, overall_score, integrity_flags, started_at, ended_at"
)

_FLAGS = TypeAdapter(List[Flag])


class InterviewPayload(BaseModel):
    id: str
    owner_id: str = Field(min_length=1)
    subscription_id: str
    candidate_name: str = Field(min_length=1)
    position: str = Field(min_length=1)
    max_questions: int = Field(ge=1)
    started_at: str


def insert_interview(conn: sqlite3.Connection, **data) -> Interview:
    """Insert a new interview in the pending state."""

    payload = InterviewPayload(**data)
    conn.execute(
        f"""INSERT INTO interviews ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, 'pending', 0, ?, NULL, '[]', ?, NULL)""",
        (
            payload.id,
            payload.owner_id,
            payload.subscription_id,
            payload.candidate_name,
            payload.position,
            payload.max_questions,
            payload.started_at,
        ),
    )
    return Interview(status="pending", **payload.model_dump())


def _row(row: sqlite3.Row) -> Interview:
    data = dict(row)
    data["integrity_flags"] = _FLAGS.validate_json(data["integrity_flags"] or "[]")
    return Interview(**data)


def get_interview(
    conn: sqlite3.Connection, interview_id: str, *, with_transcript: bool = True
) -> Optional[Interview]:
    row = conn.execute(f"SELECT {_COLUMNS} FROM interviews WHERE id = ?", (interview_id,)).fetchone()
    if row is None:
        return None
    interview = _row(row)
    if with_transcript:
        interview.transcript = list_messages(conn, interview_id)
    return interview


def list_for_owner(conn: sqlite3.Connection, owner_id: str) -> List[Interview]:
    rows = conn.execute(
        f"SELECT {_COLUMNS} FROM interviews WHERE owner_id = ? ORDER BY started_at DESC, id DESC",
        (owner_id,),
    ).fetchall()
    return [_row(row) for row in rows]


def transition(
    conn: sqlite3.Connection,
    interview_id: str,
    from_statuses: Iterable[str],
    to_status: str,
    *,
    ended_at: Optional[str] = None,
) -> bool:
    """Conditionally move the status; False if the row was not in ``from_statuses``."""

    sources = list(from_statuses)
    marks = ", ".join("?" for _ in sources)
    cur = conn.execute(
        f"""UPDATE interviews SET status = ?, ended_at = COALESCE(?, ended_at)
            WHERE id = ? AND status IN ({marks})""",
        (to_status, ended_at, interview_id, *sources),
    )
    return cur.rowcount == 1


def advance_index(conn: sqlite3.Connection, interview_id: str, expected: int) -> bool:
    """Move ``question_index`` from ``expected`` to ``expected + 1`` on an in-progress row."""

    cur = conn.execute(
        """UPDATE interviews SET question_index = question_index + 1
           WHERE id = ? AND status = 'in_progress' AND question_index = ?""",
        (interview_id, expected),
    )
    return cur.rowcount == 1


def set_outcome(
    conn: sqlite3.Connection, interview_id: str, *, overall_score: float, integrity_flags: List[Flag]
) -> None:
    conn.execute(
        "UPDATE interviews SET overall_score = ?, integrity_flags = ? WHERE id = ?",
        (overall_score, json.dumps([flag.model_dump() for flag in integrity_flags]), interview_id),
    )
