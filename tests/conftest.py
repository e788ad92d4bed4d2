"""Shared fixtures for the checkup engine tests.

Every agent runs in fallback mode (no API key), the clock is frozen on a
Wednesday morning in Paris, so every scenario is deterministic.
"""
from datetime import datetime, timezone

import pytest

from agents.investigator_agent import InvestigatorAgent
from core import observability
from services.memory_store import InMemoryTrackingStore

# Wednesday 2026-10-14, 10:00 in Paris: the bilan is about yesterday (Tuesday).
NOW = datetime(2026, 10, 14, 8, 0, tzinfo=timezone.utc)
USER = "u1"


@pytest.fixture(autouse=True)
def offline_models(monkeypatch):
    """Force every agent into its deterministic fallback."""
    monkeypatch.setattr("config.llm.GOOGLE_API_KEY", None)


@pytest.fixture(autouse=True)
def fresh_metrics():
    observability.reset_metrics()
    yield


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store(clock):
    s = InMemoryTrackingStore(clock=clock)
    s.set_timezone(USER, "Europe/Paris")
    return s


@pytest.fixture
def engine(store, clock):
    return InvestigatorAgent(store, language="fr", clock=clock)


def play(engine, messages, state=None, **kwargs):
    """Run several turns, threading the persisted state; returns all results."""
    results = []
    for message in messages:
        result = engine.run(USER, message, session=state, now=NOW, **kwargs)
        results.append(result)
        state = result.state_to_persist()
    return results
