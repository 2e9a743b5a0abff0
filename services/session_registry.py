"""Session tokens bound one-to-one to running interviews."""
from __future__ import annotations

import datetime as dt
import logging
import secrets
import sqlite3
from typing import List, Optional

from config.settings import settings
from services.errors import InvalidToken, SessionConflict, SessionExpired
from services.models import Session, SessionStatus, shift, utc_now
from storage import sessions as store
from storage.sqlite import get_conn, transaction

logger = logging.getLogger(__name__)

# Unknown, closed and idle tokens are indistinguishable to the caller.
INVALID_TOKEN = "session token is invalid or expired"


def _idle_for(session: Session, now: str) -> float:
    last = dt.datetime.fromisoformat(session.last_activity_at)
    return (dt.datetime.fromisoformat(now) - last).total_seconds()


class SessionRegistry:
    def __init__(self, idle_timeout_s: Optional[int] = None) -> None:
        self._idle_timeout_s = idle_timeout_s

    @property
    def idle_timeout_s(self) -> Optional[int]:
        if self._idle_timeout_s is not None:
            return self._idle_timeout_s
        return settings.SESSION_IDLE_TIMEOUT_S

    def issue(self, interview_id: str, *, conn: Optional[sqlite3.Connection] = None) -> Session:
        token = secrets.token_urlsafe(32)
        with transaction(conn) as tx:
            try:
                return store.insert_session(tx, token, interview_id, utc_now())
            except sqlite3.IntegrityError as exc:
                raise SessionConflict(f"interview {interview_id} already has an active session") from exc

    def validate(self, token: str) -> Session:
        """Return the active session for ``token`` and record the activity.

        Raises:
            InvalidToken: unknown, closed or idle-expired token.
        """

        if not token:
            raise InvalidToken(INVALID_TOKEN)
        now = utc_now()
        with get_conn() as conn:
            session = store.get_session(conn, token)
            if session is None or session.status != "active":
                raise InvalidToken(INVALID_TOKEN)
            timeout = self.idle_timeout_s
            if timeout is not None and _idle_for(session, now) > timeout:
                logger.info("Session for interview %s idle past %ss", session.interview_id, timeout)
                raise SessionExpired(INVALID_TOKEN)
            store.touch(conn, token, now)
        return session.model_copy(update={"last_activity_at": now})

    def lookup(self, token: str) -> Optional[Session]:
        """Raw record regardless of status."""

        with get_conn(immediate=False) as conn:
            return store.get_session(conn, token)

    def close(self, token: str, outcome: SessionStatus, *, conn: Optional[sqlite3.Connection] = None) -> bool:
        """Close an active session.

        Closing again with the same outcome is a no-op returning False; a different
        outcome raises ``SessionConflict``.
        """

        with transaction(conn) as tx:
            session = store.get_session(tx, token)
            if session is None:
                raise InvalidToken(INVALID_TOKEN)
            if session.status == outcome:
                return False
            if session.status != "active":
                raise SessionConflict(f"session already closed as {session.status}")
            return store.close_session(tx, token, outcome, utc_now())

    def find_idle(self, older_than_s: float) -> List[Session]:
        cutoff = shift(utc_now(), seconds=-older_than_s)
        with get_conn(immediate=False) as conn:
            return store.find_idle(conn, cutoff)


__all__ = ["INVALID_TOKEN", "SessionRegistry"]
