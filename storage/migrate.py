"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS subscriptions (
  id TEXT PRIMARY KEY,
  owner_id TEXT NOT NULL,
  plan_id TEXT NOT NULL,
  plan_name TEXT NOT NULL,
  interviews_remaining INTEGER NOT NULL,
  total_interviews INTEGER NOT NULL,
  status TEXT NOT NULL,
  expires_at TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  CHECK (interviews_remaining >= 0 AND interviews_remaining <= total_interviews),
  CHECK (status IN ('active', 'expired', 'cancelled'))
);
""",
    """
CREATE INDEX IF NOT EXISTS ix_subscriptions_owner ON subscriptions(owner_id, status);
""",
    """
CREATE TABLE IF NOT EXISTS interviews (
  id TEXT PRIMARY KEY,
  owner_id TEXT NOT NULL,
  subscription_id TEXT NOT NULL REFERENCES subscriptions(id),
  candidate_name TEXT NOT NULL,
  position TEXT NOT NULL,
  status TEXT NOT NULL,
  question_index INTEGER NOT NULL DEFAULT 0,
  max_questions INTEGER NOT NULL,
  overall_score REAL,
  integrity_flags TEXT NOT NULL DEFAULT '[]',
  started_at TEXT NOT NULL,
  ended_at TEXT,
  CHECK (question_index >= 0 AND question_index <= max_questions),
  CHECK (status IN ('pending', 'in_progress', 'completed', 'cancelled'))
);
""",
    """
CREATE INDEX IF NOT EXISTS ix_interviews_owner ON interviews(owner_id, started_at);
""",
    """
CREATE TABLE IF NOT EXISTS sessions (
  token TEXT PRIMARY KEY,
  interview_id TEXT NOT NULL REFERENCES interviews(id),
  status TEXT NOT NULL,
  current_question_index INTEGER NOT NULL DEFAULT 0,
  created_at TEXT NOT NULL,
  last_activity_at TEXT NOT NULL,
  closed_at TEXT,
  CHECK (status IN ('active', 'completed', 'cancelled'))
);
""",
    """
CREATE UNIQUE INDEX IF NOT EXISTS ux_sessions_one_active
  ON sessions(interview_id) WHERE status = 'active';
""",
    """
CREATE TABLE IF NOT EXISTS messages (
  id TEXT PRIMARY KEY,
  interview_id TEXT NOT NULL REFERENCES interviews(id),
  sequence INTEGER NOT NULL,
  role TEXT NOT NULL,
  content TEXT NOT NULL,
  analysis TEXT,
  metadata TEXT NOT NULL DEFAULT '{}',
  created_at TEXT NOT NULL,
  UNIQUE (interview_id, sequence),
  CHECK (role IN ('assistant', 'candidate'))
);
""",
    """
CREATE TABLE IF NOT EXISTS reports (
  id TEXT PRIMARY KEY,
  interview_id TEXT NOT NULL UNIQUE REFERENCES interviews(id),
  overall_score REAL NOT NULL,
  summary TEXT NOT NULL,
  strengths TEXT NOT NULL,
  weaknesses TEXT NOT NULL,
  recommendations TEXT NOT NULL,
  integrity_flags TEXT NOT NULL,
  total_questions INTEGER NOT NULL,
  generated_at TEXT NOT NULL
);
""",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    migrate()
