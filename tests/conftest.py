"""Shared fixtures for dream evaluation tests."""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from dream_evaluate.config import EngineConfig
from dream_evaluate.errors import ProviderCallError
from dream_evaluate.evaluation.orchestrator import EvaluationOrchestrator
from dream_evaluate.models import (
    STATUS_COMPLETED,
    DreamRecord,
    EvaluationRecord,
    EvaluationRequest,
    new_id,
    utcnow,
)
from dream_evaluate.providers.base import Provider, ProviderResponse
from dream_evaluate.storage.memory import InMemoryEvaluationStore


def score_reply(comprehension=80, quality=70, innovation=60, feasibility=50, confidence=80, reasoning="Solid plan."):
    """Provider text that satisfies the scoring contract."""
    payload = {
        "comprehensionScore": comprehension,
        "qualityScore": quality,
        "innovationScore": innovation,
        "feasibilityScore": feasibility,
        "confidence": confidence,
        "reasoning": reasoning,
    }
    return "Here is my evaluation:\n```json\n" + json.dumps(payload) + "\n```"


class MockProvider(Provider):
    """In-memory provider that replays a fixed reply or raises."""

    name = "mock"

    def __init__(self, reply=None, error=None, tokens=100):
        self._reply = reply if reply is not None else score_reply()
        self._error = error
        self._tokens = tokens
        self._lock = threading.Lock()
        self.calls = []

    def generate(self, messages, *, model, temperature=0.0, max_tokens=2000, system=None):
        with self._lock:
            self.calls.append({"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens})
        if self._error is not None:
            raise self._error
        return ProviderResponse(text=self._reply, tokens_used=self._tokens)


class FailingProvider(MockProvider):
    """Provider whose every call is a network failure."""

    def __init__(self, name="mock"):
        super().__init__(error=ProviderCallError(name, "any", "connection reset"))


class BlockingProvider(MockProvider):
    """Provider that blocks until released, to hold a run in progress."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def generate(self, messages, *, model, temperature=0.0, max_tokens=2000, system=None):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().generate(messages, model=model, temperature=temperature, max_tokens=max_tokens)


@pytest.fixture()
def store():
    return InMemoryEvaluationStore()


@pytest.fixture()
def config():
    return EngineConfig()


@pytest.fixture()
def openai_provider():
    return MockProvider(reply=score_reply(80, 80, 80, 80, confidence=90, reasoning="OpenAI view"), tokens=120)


@pytest.fixture()
def anthropic_provider():
    return MockProvider(reply=score_reply(40, 60, 50, 70, confidence=10, reasoning="Claude view"), tokens=80)


@pytest.fixture()
def orchestrator(store, config, openai_provider, anthropic_provider):
    providers = {"openai": openai_provider, "anthropic": anthropic_provider}
    return EvaluationOrchestrator(providers, store, config=config)


@pytest.fixture()
def dream_request():
    return EvaluationRequest(
        dream_id="dream-1",
        user_id="user-1",
        title="Run a marathon",
        description="Finish a full marathon in under four hours within a year.",
        category="health",
    )


@pytest.fixture()
def make_dream():
    """Factory for dream records."""

    def _make(dream_id="dream-1", user_id="user-1", category="general", status="active", created_at=None):
        return DreamRecord(
            id=dream_id,
            user_id=user_id,
            title=f"Dream {dream_id}",
            description=f"Description of {dream_id}",
            category=category,
            status=status,
            created_at=created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture()
def make_record():
    """Factory for evaluation records with sensible defaults."""

    def _make(
        dream_id="dream-1",
        user_id="user-1",
        provider="openai",
        model="gpt-4o",
        status=STATUS_COMPLETED,
        impossibility=40.0,
        confidence=80.0,
        cost=0.15,
        tokens=100,
        created_at=None,
        run_id=None,
    ):
        overall = 100 - impossibility if status == STATUS_COMPLETED else 0.0
        return EvaluationRecord(
            id=new_id(),
            run_id=run_id or new_id(),
            dream_id=dream_id,
            user_id=user_id,
            provider=provider,
            model=model,
            status=status,
            scores={"comprehension": overall, "quality": overall, "innovation": overall, "feasibility": overall}
            if status == STATUS_COMPLETED
            else {},
            overall_score=overall,
            impossibility_score=impossibility if status == STATUS_COMPLETED else 0.0,
            confidence=confidence if status == STATUS_COMPLETED else 0.0,
            reasoning="ok",
            tokens_used=tokens,
            cost=cost,
            created_at=created_at or utcnow(),
        )

    return _make


@pytest.fixture()
def days_ago():
    def _ago(days):
        return utcnow() - timedelta(days=days)

    return _ago
