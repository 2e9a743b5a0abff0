"""YAML-driven subscription plan catalog."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import yaml

from .settings import settings

DEFAULT_PLANS = {
    "version": 1,
    "plans": {
        "free-trial": {"name": "Free Trial", "interviews": 1, "trial_days": 7},
        "starter": {"name": "Starter", "interviews": 10},
        "growth": {"name": "Growth", "interviews": 50},
        "pro": {"name": "Pro", "interviews": 200},
        "enterprise": {"name": "Enterprise", "interviews": 1000},
    },
}


@dataclass(frozen=True)
class Plan:
    """One purchasable bundle of interview credits."""

    plan_id: str
    name: str
    interviews: int
    trial_days: Optional[int] = None


def _load_yaml(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_plans(path: Optional[str] = None) -> Dict[str, Plan]:
    """Read the catalog from ``path``; fall back to the built-in plans if absent."""

    try:
        cfg = _load_yaml(path or settings.PLANS_PATH)
    except FileNotFoundError:
        cfg = DEFAULT_PLANS

    catalog: Dict[str, Plan] = {}
    for plan_id, values in (cfg.get("plans") or {}).items():
        interviews = int(values.get("interviews", 0))
        if interviews < 1:
            raise ValueError(f"Plan '{plan_id}' must grant at least one interview")
        trial_days = values.get("trial_days")
        catalog[plan_id] = Plan(
            plan_id=plan_id,
            name=str(values.get("name", plan_id)),
            interviews=interviews,
            trial_days=int(trial_days) if trial_days is not None else None,
        )
    return catalog


__all__ = ["DEFAULT_PLANS", "Plan", "load_plans"]
