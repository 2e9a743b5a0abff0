"""Structured logging utilities for interview orchestration."""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "0") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/interview.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

_logger = logging.getLogger("interview")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False

_HUMAN_FORMAT = logging.Formatter(
    "[%(asctime)s] %(levelname)s %(name)s :: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _attach(handler: logging.Handler, formatter: logging.Formatter, *, json_lines: bool) -> None:
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(formatter)
    handler.addFilter(_is_json if json_lines else (lambda record: not _is_json(record)))
    _logger.addHandler(handler)


def _rotating(path: str) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)


def _ensure_handlers() -> None:
    if _logger.handlers:
        return

    _attach(logging.StreamHandler(stream=sys.stdout), _HUMAN_FORMAT, json_lines=False)
    if not ENABLE_FILE_LOGS:
        return

    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    stem = LOG_FILE[:-4] if LOG_FILE.endswith(".log") else LOG_FILE
    _attach(_rotating(LOG_FILE), logging.Formatter("%(message)s"), json_lines=True)
    _attach(_rotating(f"{stem}-human.log"), _HUMAN_FORMAT, json_lines=False)


_HUMAN_KEYS = ("status", "question_index", "collaborator", "fallback", "ms", "outcome", "refunded", "error")


def _format_human(event: dict[str, Any]) -> str:
    parts = [f"interview={event.get('interview_id')}", f"kind={event.get('kind')}"]
    parts.extend(f"{key}={event[key]}" for key in _HUMAN_KEYS if key in event)
    return " ".join(parts)


def log_event(kind: str, interview_id: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log one lifecycle event.

    The console always gets a human line. With file logs enabled the same event
    is also written as one JSON object per line.
    """

    _ensure_handlers()
    event: dict[str, Any] = {"kind": kind, "interview_id": interview_id, **fields}
    _logger.log(level, _format_human(event), extra={"is_json": False})
    if ENABLE_FILE_LOGS:
        event.update(ts=time.time(), trace=uuid.uuid4().hex)
        _logger.log(level, json.dumps(event, ensure_ascii=False, default=str), extra={"is_json": True})


__all__ = ["log_event"]
