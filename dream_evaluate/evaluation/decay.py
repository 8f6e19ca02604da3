"""Impossibility decay between evaluations and multi-point trends."""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

from dream_evaluate.models import (
    CONSENSUS_PROVIDER,
    STATUS_COMPLETED,
    DecayAnalysis,
    EvaluationRecord,
    HistorySample,
    TrendAnalysis,
)

IMPROVING = "improving"
WORSENING = "worsening"
STABLE = "stable"

STABLE_BAND = 5.0


def decay(history: list[HistorySample]) -> DecayAnalysis:
    """Compare the two most recent evaluations of a dream.

    ``decay_rate`` is the percentage drop in impossibility from the previous
    to the current evaluation; positive means the dream became more feasible.

    Parameters
    ----------
    history : list[HistorySample]
        Samples ordered newest first.

    Returns
    -------
    DecayAnalysis

    Raises
    ------
    ValueError
        If *history* is empty.
    """
    if not history:
        msg = "No completed evaluations to analyze"
        raise ValueError(msg)

    count = len(history)
    current = history[0].impossibility_score
    if count == 1:
        return DecayAnalysis(
            current_score=current,
            previous_score=None,
            decay_rate=0.0,
            trend_direction=STABLE,
            confidence=50.0,
            sample_count=1,
        )

    previous = history[1].impossibility_score
    rate = 0.0 if previous == 0 else (previous - current) / previous * 100

    if abs(rate) < STABLE_BAND:
        direction = STABLE
        confidence = 70.0 if count >= 3 else 50.0
    else:
        direction = IMPROVING if rate > 0 else WORSENING
        confidence = float(min(90, 50 + 10 * count))

    return DecayAnalysis(
        current_score=current,
        previous_score=previous,
        decay_rate=rate,
        trend_direction=direction,
        confidence=confidence,
        sample_count=count,
    )


def trend(samples: list[HistorySample]) -> TrendAnalysis:
    """Fit an ordinary-least-squares line of score against sample index.

    Parameters
    ----------
    samples : list[HistorySample]
        At least two samples in chronological order (oldest first).

    Returns
    -------
    TrendAnalysis
        ``total_improvement`` is ``first - last``; positive means the
        dream's impossibility fell over the period.

    Raises
    ------
    ValueError
        If fewer than two samples are given.
    """
    if len(samples) < 2:
        msg = f"Trend needs at least 2 samples, got {len(samples)}"
        raise ValueError(msg)

    scores = np.array([s.impossibility_score for s in samples], dtype=float)
    index = np.arange(len(samples), dtype=float)
    slope, intercept = np.polyfit(index, scores, 1)

    first, last = samples[0], samples[-1]
    span_days = 0
    if first.created_at is not None and last.created_at is not None:
        span_days = max(0, int(np.ceil((last.created_at - first.created_at).total_seconds() / 86400)))

    return TrendAnalysis(
        initial_score=first.impossibility_score,
        current_score=last.impossibility_score,
        slope=float(slope),
        intercept=float(intercept),
        total_improvement=first.impossibility_score - last.impossibility_score,
        confidence=float(np.mean([s.confidence for s in samples])),
        evaluation_count=len(samples),
        span_days=span_days,
    )


def rank_by_improvement(trends: Iterable[TrendAnalysis]) -> list[TrendAnalysis]:
    """Order trends from most to least improved."""
    return sorted(trends, key=lambda t: t.total_improvement, reverse=True)


def dream_history(records: Iterable[EvaluationRecord]) -> list[HistorySample]:
    """Collapse a dream's records into one sample per evaluation run.

    Failed records are dropped. When a run produced a consensus record it
    represents the run; otherwise the run's most recent record does.

    Returns
    -------
    list[HistorySample]
        Newest first.
    """
    chosen: dict[str, EvaluationRecord] = {}
    for record in sorted(records, key=lambda r: r.created_at, reverse=True):
        if record.status != STATUS_COMPLETED:
            continue
        current = chosen.get(record.run_id)
        if current is None or (record.provider == CONSENSUS_PROVIDER and current.provider != CONSENSUS_PROVIDER):
            chosen[record.run_id] = record
    runs = sorted(chosen.values(), key=lambda r: r.created_at, reverse=True)
    return [r.to_sample() for r in runs]
