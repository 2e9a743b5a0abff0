"""LLM route configuration for the collaborator gateway."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field


class LlmRoute(BaseModel):
    """LLM endpoint configuration."""

    name: str
    base_url: str
    endpoint: str
    model: str
    timeout_s: float = Field(ge=0.1)
    max_retries: int = Field(default=2, ge=0)
    api_key_env: str | None = None
    response_format: str | None = None
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    sequential: bool = False
    enforce_json: bool = True


class AppConfig(BaseModel):
    """Routes plus the registry key -> route id mapping."""

    llm_routes: Dict[str, LlmRoute]
    registry: Dict[str, str]


def load_config(path: Path) -> AppConfig:
    """Load configuration from disk."""

    data = path.read_text(encoding="utf-8")
    return AppConfig.model_validate_json(data)


def resolve_routes(cfg: AppConfig, keys: list[str]) -> Dict[str, LlmRoute]:
    """Map each registry key to its configured route."""

    resolved: Dict[str, LlmRoute] = {}
    for key in keys:
        if key not in cfg.registry:
            raise KeyError(f"Registry entry missing for '{key}'")
        route_id = cfg.registry[key]
        if route_id not in cfg.llm_routes:
            raise KeyError(f"Route '{route_id}' missing for '{key}'")
        resolved[key] = cfg.llm_routes[route_id]
    return resolved
