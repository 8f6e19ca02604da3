"""Read-side analytics: per-user metrics, decay trends, global benchmarks.

Consensus records are left out of every per-model figure so that a
multi-model run is not counted twice; run-level views (improvement,
trends) use :func:`dream_history`, which prefers the consensus record.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from dream_evaluate.evaluation.decay import dream_history, rank_by_improvement, trend
from dream_evaluate.models import (
    CONSENSUS_PROVIDER,
    STATUS_COMPLETED,
    DreamRecord,
    EvaluationRecord,
    TrendAnalysis,
)
from dream_evaluate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)


@dataclass
class ScoreStats:
    """Count and mean impossibility/confidence of a group of evaluations."""

    count: int = 0
    average_impossibility: float = 0.0
    average_confidence: float = 0.0


@dataclass
class UserMetrics:
    """Evaluation activity of one user over a date range.

    Attributes
    ----------
    total_evaluations : int
        Completed single-model evaluations.
    average_impossibility : float
        Mean impossibility over those evaluations (``0`` when none).
    improved_dreams : int
        Dreams whose latest run scored lower than their first run.
    evaluations_by_day : dict[str, int]
        ISO date (UTC) to evaluation count.
    model_performance : dict[str, ScoreStats]
        Keyed by ``"provider/model"``.
    """

    total_evaluations: int = 0
    average_impossibility: float = 0.0
    improved_dreams: int = 0
    evaluations_by_day: dict[str, int] = field(default_factory=dict)
    model_performance: dict[str, ScoreStats] = field(default_factory=dict)


@dataclass
class Benchmarks:
    """Anonymized statistics across every user."""

    overall: ScoreStats
    by_category: dict[str, ScoreStats] = field(default_factory=dict)
    by_model: dict[str, ScoreStats] = field(default_factory=dict)


def _model_evaluations(store: EvaluationStore, start: datetime, end: datetime, **filters) -> list[EvaluationRecord]:
    records = store.query(status=STATUS_COMPLETED, start=start, end=end, newest_first=False, **filters)
    return [r for r in records if r.provider != CONSENSUS_PROVIDER]


def _stats(records: Iterable[EvaluationRecord]) -> ScoreStats:
    records = list(records)
    if not records:
        return ScoreStats()
    count = len(records)
    return ScoreStats(
        count=count,
        average_impossibility=sum(r.impossibility_score for r in records) / count,
        average_confidence=sum(r.confidence for r in records) / count,
    )


def _group_stats(records: Iterable[EvaluationRecord], key) -> dict[str, ScoreStats]:
    groups: dict[str, list[EvaluationRecord]] = defaultdict(list)
    for record in records:
        groups[key(record)].append(record)
    return {name: _stats(members) for name, members in sorted(groups.items())}


def _model_key(record: EvaluationRecord) -> str:
    return f"{record.provider}/{record.model}"


def user_metrics(store: EvaluationStore, user_id: str, start: datetime, end: datetime) -> UserMetrics:
    """Summarize one user's evaluations created in ``[start, end)``."""
    records = _model_evaluations(store, start, end, user_id=user_id)

    by_dream: dict[str, list[EvaluationRecord]] = defaultdict(list)
    for record in store.query(user_id=user_id, status=STATUS_COMPLETED, start=start, end=end):
        by_dream[record.dream_id].append(record)
    improved = 0
    for dream_records in by_dream.values():
        history = dream_history(dream_records)
        if len(history) > 1 and history[-1].impossibility_score - history[0].impossibility_score > 0:
            improved += 1

    by_day: dict[str, int] = defaultdict(int)
    for record in records:
        by_day[record.created_at.date().isoformat()] += 1

    overall = _stats(records)
    return UserMetrics(
        total_evaluations=overall.count,
        average_impossibility=overall.average_impossibility,
        improved_dreams=improved,
        evaluations_by_day=dict(sorted(by_day.items())),
        model_performance=_group_stats(records, _model_key),
    )


def decay_trends(
    store: EvaluationStore,
    dreams: Iterable[DreamRecord],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[TrendAnalysis]:
    """Fit a trend for every dream with at least two completed runs.

    Returns
    -------
    list[TrendAnalysis]
        Most improved first.
    """
    trends: list[TrendAnalysis] = []
    for dream in dreams:
        records = store.query(dream_id=dream.id, status=STATUS_COMPLETED, start=start, end=end)
        history = dream_history(records)
        if len(history) < 2:
            continue
        fitted = trend(list(reversed(history)))
        trends.append(replace(fitted, dream_id=dream.id, title=dream.title, category=dream.category))
    logger.debug("Computed %d decay trends", len(trends))
    return rank_by_improvement(trends)


def global_benchmarks(store: EvaluationStore, start: datetime, end: datetime) -> Benchmarks | None:
    """Aggregate every user's evaluations in ``[start, end)``.

    Returns ``None`` when the range holds no completed evaluation.
    """
    records = _model_evaluations(store, start, end)
    if not records:
        return None

    categories: dict[str, str] = {}

    def category(record: EvaluationRecord) -> str:
        if record.dream_id not in categories:
            dream = store.get_dream(record.dream_id)
            categories[record.dream_id] = dream.category if dream is not None else "unknown"
        return categories[record.dream_id]

    return Benchmarks(
        overall=_stats(records),
        by_category=_group_stats(records, category),
        by_model=_group_stats(records, _model_key),
    )
