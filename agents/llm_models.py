"""Bind the collaborator registry keys to routes from the LLM config file."""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel

from agents.types import AnswerAnalysis, Question, SummaryResult
from config import ANALYZER_KEY, GENERATOR_KEY, SUMMARIZER_KEY, LlmRoute, bind_model, load_config, resolve_routes
from config.settings import settings
from llm_gateway import HttpClient, call_structured

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[1]

SCHEMAS: Dict[str, Type[BaseModel]] = {
    ANALYZER_KEY: AnswerAnalysis,
    GENERATOR_KEY: Question,
    SUMMARIZER_KEY: SummaryResult,
}


@lru_cache(maxsize=None)
def _read_prompt(path: str) -> str:
    prompt_path = Path(path)
    if not prompt_path.is_absolute():
        prompt_path = ROOT / prompt_path
    return prompt_path.read_text(encoding="utf-8")


def route_model(route: LlmRoute, schema: Type[BaseModel], client: Optional[HttpClient] = None) -> Callable[..., Any]:
    """Wrap a route as a registry callable returning a plain dict."""

    def _invoke(*, system_prompt_path: str, inputs: Dict[str, Any], temperature: float = 0.0, max_tokens: int = 400) -> Dict[str, Any]:
        result = call_structured(
            _read_prompt(system_prompt_path),
            inputs,
            schema,
            route=route,
            client=client,
            options={"temperature": temperature, "max_tokens": max_tokens},
        )
        return result.model_dump()

    return _invoke


def bind_llm_models(config_path: Optional[str] = None, client: Optional[HttpClient] = None) -> bool:
    """Bind every collaborator key from the routes file.

    Returns False (and binds nothing) when the file does not exist, which leaves the
    collaborators on their fallbacks.
    """

    path = Path(config_path or settings.LLM_CONFIG_PATH)
    if not path.exists():
        logger.warning("LLM config %s not found; collaborators will use fallbacks", path)
        return False
    routes = resolve_routes(load_config(path), list(SCHEMAS))
    for key, route in routes.items():
        bind_model(key, route_model(route, SCHEMAS[key], client))
        logger.info("Bound %s to route %s (%s)", key, route.name, route.model)
    return True


__all__ = ["bind_llm_models", "route_model"]
