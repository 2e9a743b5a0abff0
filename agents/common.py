"""Bounded-time invocation of registry-bound collaborator models."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Dict, Optional

from config.registry import get_model
from config.settings import settings
from services.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

_EXECUTOR: Optional[ThreadPoolExecutor] = None
_EXECUTOR_GUARD = threading.Lock()


def _executor() -> ThreadPoolExecutor:
    global _EXECUTOR
    with _EXECUTOR_GUARD:
        if _EXECUTOR is None:
            _EXECUTOR = ThreadPoolExecutor(
                max_workers=settings.COLLABORATOR_WORKERS,
                thread_name_prefix="collaborator",
            )
    return _EXECUTOR


def call_model(
    key: str,
    *,
    system_prompt_path: str,
    inputs: Dict[str, Any],
    timeout_s: float,
    temperature: float = 0.0,
    max_tokens: int = 400,
) -> Any:
    """Run the model bound to ``key`` and wait at most ``timeout_s`` seconds.

    A timed-out call is abandoned, not interrupted: it keeps its pool worker until
    the model returns. Models bound through ``agents.llm_models`` are bounded by the
    route's httpx timeout; other bound callables must bound themselves.

    Raises:
        CollaboratorUnavailable: unbound key, timeout, or any model failure.
    """

    try:
        llm = get_model(key)
    except KeyError as exc:
        raise CollaboratorUnavailable(f"{key} is not bound") from exc

    future = _executor().submit(
        llm,
        system_prompt_path=system_prompt_path,
        inputs=inputs,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    try:
        return future.result(timeout=timeout_s)
    except FutureTimeout as exc:
        logger.warning("Collaborator %s timed out after %.1fs", key, timeout_s)
        raise CollaboratorUnavailable(f"{key} timed out") from exc
    except Exception as exc:  # noqa: BLE001
        logger.warning("Collaborator %s failed: %s", key, exc)
        raise CollaboratorUnavailable(f"{key} failed") from exc


__all__ = ["call_model"]
