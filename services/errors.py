"""Closed error taxonomy surfaced by the interview orchestration core."""
from __future__ import annotations


class InterviewServiceError(Exception):
    """Base class; ``code`` is the stable identifier returned to callers."""

    code = "InterviewServiceError"
    retryable = False

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class QuotaExhausted(InterviewServiceError):
    code = "QuotaExhausted"


class InvalidToken(InterviewServiceError):
    code = "InvalidToken"


class SessionExpired(InvalidToken):
    """Idle session; reported to callers exactly like any other invalid token."""


class StateConflict(InterviewServiceError):
    code = "StateConflict"


class InterviewTerminal(StateConflict):
    code = "InterviewTerminal"


class SessionConflict(StateConflict):
    pass


class AnswerConflict(StateConflict):
    """Another submission already answered the pending question."""


class NotFound(InterviewServiceError):
    code = "NotFound"


class ValidationFailed(InterviewServiceError):
    code = "ValidationFailed"


class StorageFailure(InterviewServiceError):
    code = "StorageFailure"
    retryable = True


class CollaboratorUnavailable(InterviewServiceError):
    code = "CollaboratorUnavailable"


__all__ = [
    "InterviewServiceError",
    "QuotaExhausted",
    "InvalidToken",
    "SessionExpired",
    "StateConflict",
    "InterviewTerminal",
    "SessionConflict",
    "AnswerConflict",
    "NotFound",
    "ValidationFailed",
    "StorageFailure",
    "CollaboratorUnavailable",
]
