"""Simple span helper for recording collaborator timings."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from .logger import log_event


@contextmanager
def span(name: str, interview_id: str, **fields: Any) -> Iterator[Dict[str, Any]]:
    """Time the enclosed block and log it; callers may add fields to the yielded dict."""

    start = time.time()
    extra: Dict[str, Any] = dict(fields)
    try:
        yield extra
    finally:
        elapsed_ms = int((time.time() - start) * 1000)
        log_event("span", interview_id, collaborator=name, ms=elapsed_ms, **extra)


__all__ = ["span"]
