"""Per-interview mutual exclusion for state machine transitions."""
from __future__ import annotations

import threading
from typing import Dict

_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def lock_for(interview_id: str) -> threading.Lock:
    with _LOCKS_GUARD:
        lock = _LOCKS.get(interview_id)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[interview_id] = lock
    return lock


def forget(interview_id: str) -> None:
    """Drop the lock of an interview that reached a terminal state."""

    with _LOCKS_GUARD:
        _LOCKS.pop(interview_id, None)


__all__ = ["lock_for", "forget"]
