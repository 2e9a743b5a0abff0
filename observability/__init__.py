"""Observability utilities for the interview orchestration stack."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
