"""Persistence helpers for the append-only interview transcript."""
from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

from agents.types import AnswerAnalysis
from services.models import Message, Role, utc_now


def append_message(
    conn: sqlite3.Connection,
    interview_id: str,
    role: Role,
    content: str,
    *,
    analysis: Optional[AnswerAnalysis] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Message:
    """Append one message at the next sequence number and return it."""

    next_sequence = conn.execute(
        "SELECT COALESCE(MAX(sequence), -1) + 1 FROM messages WHERE interview_id = ?",
        (interview_id,),
    ).fetchone()[0]
    message = Message(
        id=uuid.uuid4().hex,
        interview_id=interview_id,
        sequence=int(next_sequence),
        role=role,
        content=content,
        analysis=analysis,
        metadata=metadata or {},
        created_at=utc_now(),
    )
    conn.execute(
        """INSERT INTO messages
           (id, interview_id, sequence, role, content, analysis, metadata, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            message.id,
            message.interview_id,
            message.sequence,
            message.role,
            message.content,
            analysis.model_dump_json() if analysis is not None else None,
            json.dumps(message.metadata),
            message.created_at,
        ),
    )
    return message


def list_messages(conn: sqlite3.Connection, interview_id: str) -> List[Message]:
    rows = conn.execute(
        """SELECT id, interview_id, sequence, role, content, analysis, metadata, created_at
           FROM messages WHERE interview_id = ? ORDER BY sequence ASC""",
        (interview_id,),
    ).fetchall()
    messages: List[Message] = []
    for row in rows:
        analysis = AnswerAnalysis.model_validate_json(row["analysis"]) if row["analysis"] else None
        messages.append(
            Message(
                id=row["id"],
                interview_id=row["interview_id"],
                sequence=row["sequence"],
                role=row["role"],
                content=row["content"],
                analysis=analysis,
                metadata=json.loads(row["metadata"]) if row["metadata"] else {},
                created_at=row["created_at"],
            )
        )
    return messages


def count_messages(conn: sqlite3.Connection, interview_id: str) -> int:
    return int(
        conn.execute("SELECT COUNT(*) FROM messages WHERE interview_id = ?", (interview_id,)).fetchone()[0]
    )
