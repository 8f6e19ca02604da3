"""Confidence-weighted consensus across several model evaluations."""

from __future__ import annotations

import hashlib
import logging
import math

from dream_evaluate.models import (
    CONSENSUS_PROVIDER,
    DIMENSIONS,
    DimensionScores,
    EvaluationMetadata,
    EvaluationResult,
)

logger = logging.getLogger(__name__)

CONSENSUS_METHOD = "confidence-weighted-average"


def consensus_weights(results: list[EvaluationResult]) -> list[float]:
    """Return per-result weights proportional to confidence.

    Falls back to uniform weights when every confidence is zero.
    """
    total = math.fsum(r.confidence for r in results)
    if total <= 0:
        return [1 / len(results)] * len(results)
    return [r.confidence / total for r in results]


def consensus(results: list[EvaluationResult]) -> EvaluationResult:
    """Combine evaluations of the same dream into one result.

    Each dimension is a confidence-weighted mean across inputs; the overall
    score is then the plain mean of those aggregated dimensions (not a
    weighted mean of each model's own overall score). Sums are exact, so
    the aggregate does not depend on the order of *results*; only the
    reasoning text follows that order.

    Parameters
    ----------
    results : list[EvaluationResult]
        Successful evaluations, in the order they should be reported.

    Returns
    -------
    EvaluationResult
        The sole input unchanged when only one is given, otherwise a new
        result with ``metadata.provider == "consensus"``.

    Raises
    ------
    ValueError
        If *results* is empty.
    """
    if not results:
        msg = "No evaluations provided for consensus"
        raise ValueError(msg)

    if len(results) == 1:
        return results[0]

    weights = consensus_weights(results)
    aggregated = {
        name: math.fsum(getattr(r.scores, name) * w for r, w in zip(results, weights)) for name in DIMENSIONS
    }
    confidence = math.fsum(r.confidence * w for r, w in zip(results, weights))

    reasoning = "\n\n".join(
        f"Model {index} ({r.metadata.model}): {r.reasoning}" for index, r in enumerate(results, start=1)
    )
    members = [f"{r.metadata.provider}/{r.metadata.model}" for r in results]
    prompt_hash = hashlib.sha256("".join(r.metadata.prompt_hash for r in results).encode("utf-8")).hexdigest()[:16]

    metadata = EvaluationMetadata(
        provider=CONSENSUS_PROVIDER,
        model=f"consensus-{len(results)}-models",
        tokens_used=sum(r.metadata.tokens_used for r in results),
        duration_ms=max(r.metadata.duration_ms for r in results),
        parameters={
            "model_count": len(results),
            "models": members,
            "weights": weights,
            "consensus_method": CONSENSUS_METHOD,
        },
        prompt_hash=prompt_hash,
        cost=math.fsum(r.metadata.cost for r in results),
    )

    result = EvaluationResult(
        scores=DimensionScores(**aggregated),
        confidence=confidence,
        reasoning=f"Consensus evaluation from {len(results)} models:\n\n{reasoning}",
        metadata=metadata,
    )
    logger.debug("Consensus of %d models impossibility=%.2f", len(results), result.impossibility_score)
    return result
