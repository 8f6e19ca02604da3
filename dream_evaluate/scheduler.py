"""Budget-aware, priority-ordered re-evaluation scheduler."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from dream_evaluate.config import (
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    PRIORITY_TIERS,
    SchedulerConfig,
)
from dream_evaluate.costs import CostTracker
from dream_evaluate.evaluation.decay import dream_history
from dream_evaluate.evaluation.orchestrator import EvaluationOrchestrator
from dream_evaluate.models import (
    DREAM_ACTIVE,
    STATUS_COMPLETED,
    ModelTarget,
    RunSummary,
    ScheduleCandidate,
    utcnow,
)
from dream_evaluate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)

STATE_IDLE = "idle"
STATE_RUNNING = "running"

STATUS_BUDGET_EXHAUSTED = "budget_exhausted"
STATUS_REJECTED = "rejected"

_TIER_RANK = {tier: rank for rank, tier in enumerate(PRIORITY_TIERS)}


class DreamEvaluationScheduler:
    """Re-evaluate stale dreams within a hard daily cost ceiling.

    One pass selects active dreams whose latest completed evaluation is
    older than the retest interval, ranks them by priority tier and
    staleness, and evaluates them one at a time with the tier's models.
    Candidates that would overrun the budget, or whose models have hit
    their daily request cap, are skipped rather than failed.

    At most one pass runs per instance; a second call while a pass is in
    progress returns immediately with ``status="rejected"``.

    Parameters
    ----------
    orchestrator : EvaluationOrchestrator
        Performs the provider calls and persists records. Its
        ``config.scheduler`` supplies the budget, thresholds, tier models,
        and per-model costs, so estimates and charged costs agree.
    store : EvaluationStore
        Source of dreams and evaluation history.
    cost_tracker : CostTracker | None
        Read-side spend aggregation; built over *store* when ``None``.
    sleep : Callable[[float], None]
        Delay function used between candidates.
    clock : Callable[[], datetime] | None
        Source of "now".
    """

    def __init__(
        self,
        orchestrator: EvaluationOrchestrator,
        store: EvaluationStore,
        *,
        cost_tracker: CostTracker | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._store = store
        self._config = orchestrator.config.scheduler
        self._clock = clock or utcnow
        self._costs = cost_tracker or CostTracker(store, clock=self._clock)
        self._sleep = sleep
        self._lock = threading.Lock()

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def state(self) -> str:
        return STATE_RUNNING if self._lock.locked() else STATE_IDLE

    def priority_for(self, score: float | None) -> str:
        """Map the latest impossibility score to a tier; ``None`` is medium."""
        if score is None:
            return PRIORITY_MEDIUM
        thresholds = self._config.priority_thresholds
        if score >= thresholds.high:
            return PRIORITY_HIGH
        if score >= thresholds.medium:
            return PRIORITY_MEDIUM
        return PRIORITY_LOW

    def tier_models(self, tier: str) -> list[ModelTarget]:
        return list(self._config.tier_models[tier])

    def estimate_cost(self, tier: str) -> float:
        """Sum the flat per-request cost of every model in *tier*."""
        return sum(self._config.cost_per_request(t.model) for t in self.tier_models(tier))

    def eligible_candidates(self) -> list[ScheduleCandidate]:
        """Return active dreams due for re-evaluation, in processing order.

        A dream is due when it has no completed evaluation or its latest one
        is older than ``retest_interval_days``. At most ``candidate_limit``
        dreams are considered. Ordering is tier (high, medium, low), then
        oldest evaluation first, with never-evaluated dreams ahead.
        """
        cutoff = self._clock() - timedelta(days=self._config.retest_interval_days)
        candidates: list[ScheduleCandidate] = []

        for dream in self._store.list_dreams(status=DREAM_ACTIVE):
            history = dream_history(self._store.query(dream_id=dream.id, status=STATUS_COMPLETED))
            if history:
                latest = history[0]
                if latest.created_at is not None and latest.created_at >= cutoff:
                    continue
                candidate = ScheduleCandidate(
                    dream=dream,
                    priority=self.priority_for(latest.impossibility_score),
                    last_score=latest.impossibility_score,
                    last_confidence=latest.confidence,
                    last_evaluated_at=latest.created_at,
                )
            else:
                candidate = ScheduleCandidate(dream=dream, priority=self.priority_for(None))
            candidates.append(candidate)
            if len(candidates) >= self._config.candidate_limit:
                break

        candidates.sort(key=_processing_order)
        return candidates

    def run(self) -> RunSummary:
        """Execute one scheduler pass.

        Returns
        -------
        RunSummary
            ``status`` is ``"rejected"`` if another pass is in progress and
            ``"budget_exhausted"`` if today's spend already met the ceiling;
            both come back without any provider call.
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Scheduler run rejected: a run is already in progress")
            return RunSummary(status=STATUS_REJECTED)
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> RunSummary:
        budget = self._config.max_cost_per_day
        spent = self._costs.daily_spend()
        if spent >= budget:
            logger.info("Daily budget exhausted before run: spent=%.2f budget=%.2f", spent, budget)
            return RunSummary(total_cost=spent, status=STATUS_BUDGET_EXHAUSTED)

        candidates = self.eligible_candidates()
        logger.info("Scheduler run started: candidates=%d spent=%.2f budget=%.2f", len(candidates), spent, budget)

        summary = RunSummary(total_cost=spent)
        for candidate in candidates:
            if summary.total_cost >= budget:
                logger.info("Daily budget reached at %.2f; stopping", summary.total_cost)
                break

            estimate = self.estimate_cost(candidate.priority)
            if summary.total_cost + estimate > budget:
                logger.info(
                    "Skipping dream=%s tier=%s: estimate %.2f exceeds remaining %.2f",
                    candidate.dream.id,
                    candidate.priority,
                    estimate,
                    budget - summary.total_cost,
                )
                summary.skipped += 1
                continue

            capped = self._capped_model(candidate.priority)
            if capped is not None:
                logger.warning("Skipping dream=%s: model %s reached its daily request limit", candidate.dream.id, capped)
                summary.skipped += 1
                continue

            try:
                results, _ = self._orchestrator.evaluate_with_consensus(
                    candidate.dream.to_request(), self.tier_models(candidate.priority)
                )
            except Exception:
                logger.exception("Scheduled evaluation crashed for dream=%s", candidate.dream.id)
                summary.failed += 1
                continue

            if results:
                summary.processed += 1
                summary.total_cost += sum(r.metadata.cost for r in results)
            else:
                logger.warning("All evaluations failed for dream=%s", candidate.dream.id)
                summary.failed += 1

            if self._config.inter_call_delay > 0:
                self._sleep(self._config.inter_call_delay)

        logger.info(
            "Scheduler run finished: processed=%d skipped=%d failed=%d total_cost=%.2f",
            summary.processed,
            summary.skipped,
            summary.failed,
            summary.total_cost,
        )
        return summary

    def _capped_model(self, tier: str) -> str | None:
        for target in self.tier_models(tier):
            limit = self._config.model_limits.get(target.model)
            if limit is None or limit.max_requests_per_day is None:
                continue
            if self._costs.model_requests(target.model) >= limit.max_requests_per_day:
                return target.model
        return None


def _processing_order(candidate: ScheduleCandidate) -> tuple:
    evaluated_at = candidate.last_evaluated_at
    never = evaluated_at is None
    return (_TIER_RANK[candidate.priority], not never, evaluated_at.timestamp() if evaluated_at else 0.0)


def run_scheduled_evaluations(scheduler: DreamEvaluationScheduler) -> RunSummary:
    """Run one scheduler pass synchronously and return its summary."""
    return scheduler.run()


class PeriodicTrigger:
    """Run :func:`run_scheduled_evaluations` on a fixed interval.

    Parameters
    ----------
    scheduler : DreamEvaluationScheduler
        Scheduler to trigger.
    interval_hours : float | None
        Period between passes; defaults to the scheduler's
        ``interval_hours``.
    """

    JOB_ID = "dream_evaluation"

    def __init__(self, scheduler: DreamEvaluationScheduler, interval_hours: float | None = None) -> None:
        self._scheduler = scheduler
        self._interval_hours = interval_hours or scheduler.config.interval_hours
        self._background = BackgroundScheduler(timezone="UTC")
        self._background.add_job(
            self._tick,
            IntervalTrigger(hours=self._interval_hours),
            id=self.JOB_ID,
            name="Dream Evaluation",
            max_instances=1,
            coalesce=True,
        )

    @property
    def running(self) -> bool:
        return self._background.running

    def start(self) -> None:
        self._background.start()
        logger.info("Periodic evaluation trigger started: every %.1f hours", self._interval_hours)

    def shutdown(self, wait: bool = False) -> None:
        if self._background.running:
            self._background.shutdown(wait=wait)
            logger.info("Periodic evaluation trigger stopped")

    def _tick(self) -> RunSummary:
        return run_scheduled_evaluations(self._scheduler)
