import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import registry
from config.plans import load_plans
from config.registry import ANALYZER_KEY, GENERATOR_KEY, SUMMARIZER_KEY, bind_model
from config.settings import settings
from services.interview_machine import InterviewStateMachine
from services.ledger import Ledger
from storage.migrate import migrate

OWNER = "owner-1"


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    """Every test starts with no collaborators bound, i.e. on fallbacks."""

    monkeypatch.setattr(registry, "_REGISTRY", {})


@pytest.fixture
def fake_models():
    calls = {"analyzer": 0, "generator": 0, "summarizer": 0}

    def analyzer(**kwargs):
        calls["analyzer"] += 1
        return {
            "confidence": 0.8,
            "relevance": 0.9,
            "emotion_label": "calm",
            "integrity_flags": [],
            "suggestions": ["Quantify the impact"],
        }

    def generator(**kwargs):
        calls["generator"] += 1
        number = kwargs["inputs"]["question_number"]
        return {"text": f"Generated question {number}", "category": "technical", "difficulty": "medium"}

    def summarizer(**kwargs):
        calls["summarizer"] += 1
        return {
            "summary": "Solid, specific answers.",
            "strengths": ["Specific examples"],
            "weaknesses": ["Brief on testing"],
            "recommendations": ["Discuss testing strategy"],
        }

    bind_model(ANALYZER_KEY, analyzer)
    bind_model(GENERATOR_KEY, generator)
    bind_model(SUMMARIZER_KEY, summarizer)
    return calls


@pytest.fixture
def ledger():
    return Ledger(load_plans(str(ROOT / "config" / "plans.yaml")))


@pytest.fixture
def machine(ledger):
    return InterviewStateMachine(ledger=ledger)


@pytest.fixture
def subscription(ledger):
    return ledger.open_subscription(OWNER, "starter")
