"""SQLite helpers for the persistence layer."""
from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager, nullcontext
from typing import ContextManager, Iterator, Optional

from config.settings import settings
from services.errors import StorageFailure

logger = logging.getLogger(__name__)


def connect() -> sqlite3.Connection:
    """Open an autocommit connection; transactions are opened explicitly."""

    directory = os.path.dirname(settings.DB_PATH) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(
        settings.DB_PATH,
        timeout=settings.SQLITE_TIMEOUT_S,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_conn(immediate: bool = True) -> Iterator[sqlite3.Connection]:
    """Yield a connection inside one transaction.

    ``immediate`` takes the write lock up front so read-then-write sequences
    cannot fail on lock upgrade. Everything is rolled back if the block raises,
    and driver errors surface as ``StorageFailure``.
    """

    try:
        conn = connect()
    except sqlite3.Error as exc:
        logger.error("SQLite connect failed: %s", exc)
        raise StorageFailure("storage unavailable") from exc
    try:
        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        yield conn
        conn.execute("COMMIT")
    except sqlite3.Error as exc:
        _rollback(conn)
        logger.error("SQLite transaction failed: %s", exc)
        raise StorageFailure("storage round-trip failed") from exc
    except BaseException:
        _rollback(conn)
        raise
    finally:
        conn.close()


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


def transaction(conn: Optional[sqlite3.Connection] = None) -> ContextManager[sqlite3.Connection]:
    """Join the caller's open transaction when given one, otherwise begin a new one."""

    return nullcontext(conn) if conn is not None else get_conn()
