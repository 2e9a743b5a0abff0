"""Configuration package for the interview orchestration service."""
from .llm_routes import AppConfig, LlmRoute, load_config, resolve_routes
from .plans import Plan, load_plans
from .registry import ANALYZER_KEY, GENERATOR_KEY, SUMMARIZER_KEY, bind_model, get_model, is_bound
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "resolve_routes",
    "Plan",
    "load_plans",
    "ANALYZER_KEY",
    "GENERATOR_KEY",
    "SUMMARIZER_KEY",
    "bind_model",
    "get_model",
    "is_bound",
    "Settings",
    "settings",
]
