"""Direct evaluation trigger and on-demand decay analysis."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from dream_evaluate.evaluation.decay import decay, dream_history
from dream_evaluate.evaluation.orchestrator import EvaluationOrchestrator
from dream_evaluate.models import (
    CONSENSUS_PROVIDER,
    STATUS_COMPLETED,
    DecayAnalysis,
    DimensionScores,
    EvaluationMetadata,
    EvaluationRecord,
    EvaluationRequest,
    EvaluationResult,
)
from dream_evaluate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)

REUSE_WINDOW = timedelta(hours=24)


@dataclass
class EvaluationOutcome:
    """What a direct evaluation returns to its caller.

    Attributes
    ----------
    results : list[EvaluationResult]
        Successful single-model results; empty when every provider failed.
    consensus : EvaluationResult | None
        Aggregate of two or more results.
    decay : DecayAnalysis | None
        Decay over the dream's history after this evaluation.
    reused : bool
        ``True`` when a recent evaluation was returned without calling any
        provider.
    """

    results: list[EvaluationResult] = field(default_factory=list)
    consensus: EvaluationResult | None = None
    decay: DecayAnalysis | None = None
    reused: bool = False


def result_from_record(record: EvaluationRecord) -> EvaluationResult:
    """Rebuild an :class:`EvaluationResult` from a completed record."""
    return EvaluationResult(
        scores=DimensionScores(**record.scores),
        confidence=record.confidence,
        reasoning=record.reasoning,
        metadata=EvaluationMetadata(
            provider=record.provider,
            model=record.model,
            tokens_used=record.tokens_used,
            duration_ms=record.duration_ms,
            parameters=dict(record.parameters),
            prompt_hash=record.prompt_hash,
            cost=record.cost,
        ),
    )


def analyze_decay(store: EvaluationStore, dream_id: str) -> DecayAnalysis:
    """Compute decay over a dream's completed evaluation runs.

    Raises
    ------
    LookupError
        If the dream has no completed evaluation.
    """
    history = dream_history(store.query(dream_id=dream_id, status=STATUS_COMPLETED))
    if not history:
        msg = f"No completed evaluations for dream {dream_id!r}"
        raise LookupError(msg)
    return decay(history)


def _recent_outcome(
    store: EvaluationStore, request: EvaluationRequest, now: datetime
) -> EvaluationOutcome | None:
    since = now - REUSE_WINDOW
    recent = store.query(dream_id=request.dream_id, status=STATUS_COMPLETED, start=since)
    if not recent:
        return None
    run_id = recent[0].run_id
    run = [r for r in recent if r.run_id == run_id]
    members = [result_from_record(r) for r in reversed(run) if r.provider != CONSENSUS_PROVIDER]
    combined = next((result_from_record(r) for r in run if r.provider == CONSENSUS_PROVIDER), None)
    return EvaluationOutcome(results=members, consensus=combined, reused=True)


def evaluate_dream(
    request: EvaluationRequest,
    *,
    orchestrator: EvaluationOrchestrator,
    consensus: bool = True,
    retest: bool = False,
) -> EvaluationOutcome:
    """Evaluate one dream now.

    Parameters
    ----------
    request : EvaluationRequest
        Dream to evaluate.
    orchestrator : EvaluationOrchestrator
        Performs the provider calls.
    consensus : bool
        Build and persist a consensus when two or more models succeed.
    retest : bool
        When ``False`` (the default), a completed evaluation from the 24
        hours before the orchestrator's clock is returned instead of calling
        the providers again. ``True`` always calls the providers.

    Returns
    -------
    EvaluationOutcome
    """
    store = orchestrator.store
    if not retest:
        outcome = _recent_outcome(store, request, orchestrator.clock())
        if outcome is not None:
            logger.info("Reusing recent evaluation for dream=%s", request.dream_id)
            outcome.decay = analyze_decay(store, request.dream_id)
            return outcome

    if consensus:
        results, combined = orchestrator.evaluate_with_consensus(request)
    else:
        results, combined = orchestrator.evaluate(request), None

    outcome = EvaluationOutcome(results=results, consensus=combined)
    if results:
        outcome.decay = analyze_decay(store, request.dream_id)
    return outcome
