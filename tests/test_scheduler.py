"""Tests for the budget-aware re-evaluation scheduler."""

import threading

import pytest
from conftest import BlockingProvider, FailingProvider, MockProvider, score_reply

from dream_evaluate.api import analyze_decay
from dream_evaluate.config import EngineConfig, ModelLimit, SchedulerConfig, load_config
from dream_evaluate.evaluation.orchestrator import EvaluationOrchestrator
from dream_evaluate.models import STATUS_COMPLETED, STATUS_FAILED
from dream_evaluate.scheduler import DreamEvaluationScheduler, PeriodicTrigger, run_scheduled_evaluations


class _Sleeper:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture()
def providers():
    return {
        "openai": MockProvider(reply=score_reply(confidence=70)),
        "anthropic": MockProvider(reply=score_reply(confidence=60)),
    }


@pytest.fixture()
def build_scheduler(store, providers):
    def _build(scheduler_config=None, provider_map=None, sleep=None):
        config = EngineConfig(scheduler=scheduler_config or SchedulerConfig())
        orch = EvaluationOrchestrator(provider_map or providers, store, config=config)
        return DreamEvaluationScheduler(orch, store, sleep=sleep or _Sleeper())

    return _build


def _seed(store, make_dream, make_record, dream_id, impossibility=None, age_days=None, days_ago=None, **dream_kw):
    store.add_dream(make_dream(dream_id, **dream_kw))
    if impossibility is not None:
        store.create(
            make_record(dream_id=dream_id, impossibility=impossibility, created_at=days_ago(age_days), cost=0.15)
        )


# -- Tiering and eligibility --------------------------------------------------


def test_priority_for(build_scheduler):
    scheduler = build_scheduler()
    assert scheduler.priority_for(None) == "medium"
    assert scheduler.priority_for(75) == "high"
    assert scheduler.priority_for(74.9) == "medium"
    assert scheduler.priority_for(50) == "medium"
    assert scheduler.priority_for(49.9) == "low"


def test_estimate_cost_per_tier(build_scheduler):
    scheduler = build_scheduler()
    assert scheduler.estimate_cost("high") == pytest.approx(0.27)
    assert scheduler.estimate_cost("medium") == pytest.approx(0.12)
    assert scheduler.estimate_cost("low") == pytest.approx(0.03)


def test_eligible_candidates_order_and_filters(store, build_scheduler, make_dream, make_record, days_ago):
    _seed(store, make_dream, make_record, "low-old", 20.0, 100, days_ago)
    _seed(store, make_dream, make_record, "high-35", 90.0, 35, days_ago)
    _seed(store, make_dream, make_record, "high-60", 80.0, 60, days_ago)
    _seed(store, make_dream, make_record, "never")
    _seed(store, make_dream, make_record, "medium-45", 60.0, 45, days_ago)
    _seed(store, make_dream, make_record, "fresh", 90.0, 5, days_ago)
    _seed(store, make_dream, make_record, "archived", status="archived")

    candidates = build_scheduler().eligible_candidates()

    assert [c.dream.id for c in candidates] == ["high-60", "high-35", "never", "medium-45", "low-old"]
    assert [c.priority for c in candidates] == ["high", "high", "medium", "medium", "low"]
    never = candidates[2]
    assert never.last_score is None
    assert never.last_evaluated_at is None


def test_only_failed_history_counts_as_never_evaluated(store, build_scheduler, make_dream, make_record, days_ago):
    store.add_dream(make_dream("d1"))
    store.create(make_record(dream_id="d1", status=STATUS_FAILED, created_at=days_ago(1)))

    candidates = build_scheduler().eligible_candidates()

    assert [(c.dream.id, c.priority) for c in candidates] == [("d1", "medium")]


def test_candidate_limit(store, build_scheduler, make_dream):
    for i in range(3):
        store.add_dream(make_dream(f"d{i}"))

    candidates = build_scheduler(SchedulerConfig(candidate_limit=2)).eligible_candidates()

    assert len(candidates) == 2


# -- Runs ---------------------------------------------------------------------


def test_budget_exhausted_makes_no_calls(store, build_scheduler, providers, make_dream, make_record):
    store.add_dream(make_dream("d1"))
    store.create(make_record(dream_id="other", cost=10.0))

    summary = build_scheduler().run()

    assert (summary.processed, summary.skipped, summary.failed) == (0, 0, 0)
    assert summary.total_cost == pytest.approx(10.0)
    assert summary.status == "budget_exhausted"
    assert providers["openai"].calls == []
    assert providers["anthropic"].calls == []


def test_over_budget_candidate_is_skipped_and_cheaper_one_runs(
    store, build_scheduler, providers, make_dream, make_record, days_ago
):
    _seed(store, make_dream, make_record, "expensive", 90.0, 60, days_ago)
    _seed(store, make_dream, make_record, "cheap", 20.0, 60, days_ago)

    summary = build_scheduler(SchedulerConfig(max_cost_per_day=0.2)).run()

    assert summary.processed == 1
    assert summary.skipped == 1
    assert summary.failed == 0
    assert summary.total_cost == pytest.approx(0.03)
    assert [c["model"] for c in providers["openai"].calls] == ["gpt-4o-mini"]
    assert providers["anthropic"].calls == []


def test_run_stops_once_budget_reached(store, build_scheduler, providers, make_dream):
    store.add_dream(make_dream("d1"))
    store.add_dream(make_dream("d2"))

    summary = build_scheduler(SchedulerConfig(max_cost_per_day=0.12)).run()

    assert summary.processed == 1
    assert summary.skipped == 0
    assert summary.total_cost == pytest.approx(0.12)
    assert len(providers["anthropic"].calls) == 1


def test_all_provider_failures_count_as_failed(store, build_scheduler, make_dream):
    store.add_dream(make_dream("d1"))
    failing = {"openai": FailingProvider("openai"), "anthropic": FailingProvider("anthropic")}

    summary = build_scheduler(provider_map=failing).run()

    assert (summary.processed, summary.skipped, summary.failed) == (0, 0, 1)
    assert summary.status == "completed"


def test_candidate_exception_is_isolated(store, build_scheduler, make_dream, monkeypatch):
    store.add_dream(make_dream("d1"))
    store.add_dream(make_dream("d2"))
    scheduler = build_scheduler()
    orch = scheduler._orchestrator
    original = orch.evaluate_with_consensus

    def _crash_on_d1(request, models=None):
        if request.dream_id == "d1":
            raise RuntimeError("boom")
        return original(request, models)

    monkeypatch.setattr(orch, "evaluate_with_consensus", _crash_on_d1)

    summary = scheduler.run()

    assert summary.failed == 1
    assert summary.processed == 1


def test_provider_crash_is_recorded_and_run_continues(store, build_scheduler, make_dream):
    store.add_dream(make_dream("d1"))
    store.add_dream(make_dream("d2"))
    crashing = {"openai": MockProvider(), "anthropic": MockProvider(error=RuntimeError("boom"))}

    summary = build_scheduler(provider_map=crashing).run()

    assert (summary.processed, summary.failed) == (0, 2)
    failures = [r for r in store.records() if r.status == STATUS_FAILED]
    assert len(failures) == 2
    assert all("boom" in r.error_message for r in failures)


def test_undecodable_reply_does_not_lose_sibling_cost(store, build_scheduler, make_dream, make_record, days_ago):
    _seed(store, make_dream, make_record, "d1", 90.0, 60, days_ago)
    nested = '{"a": ' + "[" * 100000 + "]" * 100000 + "}"
    provider_map = {"openai": MockProvider(reply=nested), "anthropic": MockProvider(reply=score_reply())}

    summary = build_scheduler(provider_map=provider_map).run()

    assert summary.processed == 1
    assert summary.failed == 0
    assert summary.total_cost == pytest.approx(0.12)
    new = [r for r in store.records() if r.created_at > days_ago(1)]
    assert sorted((r.provider, r.status) for r in new) == [("anthropic", "completed"), ("openai", "failed")]


def test_model_without_request_cap_is_not_skipped(store, build_scheduler, providers, make_dream, make_record):
    store.add_dream(make_dream("d1"))
    store.create(make_record(dream_id="other", model="claude-3-5-sonnet-20241022", provider="anthropic"))
    config = load_config({"scheduler": {"model_limits": {"claude-3-5-sonnet-20241022": {"cost_per_request": 0.2}}}})

    summary = build_scheduler(config.scheduler).run()

    assert summary.skipped == 0
    assert summary.processed == 1
    assert len(providers["anthropic"].calls) == 1



def test_model_at_daily_limit_is_skipped(store, build_scheduler, providers, make_dream, make_record):
    store.add_dream(make_dream("d1"))
    store.create(
        make_record(dream_id="other", model="claude-3-5-sonnet-20241022", provider="anthropic", status=STATUS_FAILED)
    )
    config = SchedulerConfig(model_limits={"claude-3-5-sonnet-20241022": ModelLimit(1, 0.12)})

    summary = build_scheduler(config).run()

    assert summary.skipped == 1
    assert summary.processed == 0
    assert providers["anthropic"].calls == []


def test_delay_applied_after_each_evaluated_candidate(store, build_scheduler, make_dream):
    store.add_dream(make_dream("d1"))
    store.add_dream(make_dream("d2"))
    sleeper = _Sleeper()

    build_scheduler(SchedulerConfig(inter_call_delay=1.5), sleep=sleeper).run()

    assert sleeper.calls == [1.5, 1.5]


def test_concurrent_run_is_rejected(store, build_scheduler, make_dream):
    store.add_dream(make_dream("d1"))
    blocking = BlockingProvider()
    scheduler = build_scheduler(provider_map={"openai": MockProvider(), "anthropic": blocking})
    outcome = {}

    worker = threading.Thread(target=lambda: outcome.setdefault("first", scheduler.run()))
    worker.start()
    try:
        assert blocking.entered.wait(timeout=5)
        assert scheduler.state == "running"

        second = scheduler.run()

        assert second.status == "rejected"
        assert (second.processed, second.skipped, second.failed, second.total_cost) == (0, 0, 0, 0.0)
    finally:
        blocking.release.set()
        worker.join(timeout=5)

    assert outcome["first"].processed == 1
    assert scheduler.state == "idle"


def test_never_evaluated_dream_end_to_end(store, build_scheduler, providers, make_dream):
    store.add_dream(make_dream("d1"))

    summary = run_scheduled_evaluations(build_scheduler())

    assert summary.processed == 1
    assert summary.total_cost == pytest.approx(0.12)
    assert [c["model"] for c in providers["anthropic"].calls] == ["claude-3-5-sonnet-20241022"]
    assert providers["openai"].calls == []

    records = list(store.records())
    assert len(records) == 1
    assert records[0].status == STATUS_COMPLETED

    analysis = analyze_decay(store, "d1")
    assert analysis.previous_score is None
    assert analysis.trend_direction == "stable"


def test_high_tier_persists_consensus(store, build_scheduler, providers, make_dream, make_record, days_ago):
    _seed(store, make_dream, make_record, "d1", 90.0, 60, days_ago)

    summary = build_scheduler().run()

    assert summary.processed == 1
    assert summary.total_cost == pytest.approx(0.27)
    new = [r for r in store.records() if r.created_at > days_ago(1)]
    assert sorted(r.provider for r in new) == ["anthropic", "consensus", "openai"]


# -- Triggers -----------------------------------------------------------------


def test_periodic_trigger_lifecycle(build_scheduler):
    trigger = PeriodicTrigger(build_scheduler(), interval_hours=6)
    assert trigger.running is False

    trigger.start()
    try:
        assert trigger.running is True
    finally:
        trigger.shutdown()

    assert trigger.running is False


def test_periodic_trigger_tick_runs_scheduler(store, build_scheduler, make_dream):
    store.add_dream(make_dream("d1"))
    trigger = PeriodicTrigger(build_scheduler())

    summary = trigger._tick()

    assert summary.processed == 1


def test_estimate_matches_charged_cost(store, build_scheduler, providers, make_dream):
    store.add_dream(make_dream("d1"))
    config = SchedulerConfig(model_limits={"claude-3-5-sonnet-20241022": ModelLimit(cost_per_request=0.4)})
    scheduler = build_scheduler(config)

    summary = scheduler.run()

    assert scheduler.config is scheduler._orchestrator.config.scheduler
    assert scheduler.estimate_cost("medium") == pytest.approx(0.4)
    assert summary.total_cost == pytest.approx(0.4)
