"""Persistence helpers for session tokens."""
from __future__ import annotations

import sqlite3
from typing import List, Optional

from services.models import Session

_COLUMNS = "token, interview_id, status, current_question_index, created_at, last_activity_at, closed_at"


def insert_session(conn: sqlite3.Connection, token: str, interview_id: str, now: str) -> Session:
    """Insert an active session.

    Raises ``sqlite3.IntegrityError`` when the interview already has an active one.
    """

    conn.execute(
        f"""INSERT INTO sessions ({_COLUMNS})
            VALUES (?, ?, 'active', 0, ?, ?, NULL)""",
        (token, interview_id, now, now),
    )
    return Session(token=token, interview_id=interview_id, status="active", created_at=now, last_activity_at=now)


def get_session(conn: sqlite3.Connection, token: str) -> Optional[Session]:
    row = conn.execute(f"SELECT {_COLUMNS} FROM sessions WHERE token = ?", (token,)).fetchone()
    return Session(**dict(row)) if row else None


def active_for_interview(conn: sqlite3.Connection, interview_id: str) -> Optional[Session]:
    row = conn.execute(
        f"SELECT {_COLUMNS} FROM sessions WHERE interview_id = ? AND status = 'active'",
        (interview_id,),
    ).fetchone()
    return Session(**dict(row)) if row else None


def touch(conn: sqlite3.Connection, token: str, now: str, question_index: Optional[int] = None) -> None:
    conn.execute(
        """UPDATE sessions
           SET last_activity_at = ?, current_question_index = COALESCE(?, current_question_index)
           WHERE token = ? AND status = 'active'""",
        (now, question_index, token),
    )


def close_session(conn: sqlite3.Connection, token: str, outcome: str, now: str) -> bool:
    cur = conn.execute(
        "UPDATE sessions SET status = ?, closed_at = ? WHERE token = ? AND status = 'active'",
        (outcome, now, token),
    )
    return cur.rowcount == 1


def find_idle(conn: sqlite3.Connection, cutoff: str) -> List[Session]:
    rows = conn.execute(
        f"""SELECT {_COLUMNS} FROM sessions
            WHERE status = 'active' AND last_activity_at < ?
            ORDER BY last_activity_at ASC""",
        (cutoff,),
    ).fetchall()
    return [Session(**dict(row)) for row in rows]
