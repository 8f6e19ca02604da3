"""Data models for dream evaluation, consensus, and scheduling."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

DIMENSIONS: tuple[str, ...] = ("comprehension", "quality", "innovation", "feasibility")

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

DREAM_ACTIVE = "active"
DREAM_ARCHIVED = "archived"

CONSENSUS_PROVIDER = "consensus"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ModelTarget:
    """A (provider, model) pair the orchestrator can call.

    Parameters
    ----------
    provider : str
        Registered provider name (e.g. ``"openai"``).
    model : str
        Model identifier understood by that provider.
    """

    provider: str
    model: str

    @property
    def label(self) -> str:
        return f"{self.provider}/{self.model}"


@dataclass
class EvaluationRequest:
    """Input for one evaluation of one dream.

    Parameters
    ----------
    dream_id : str
        Identifier of the dream being scored.
    user_id : str
        Owner of the evaluation (used for rate limits and cost reports).
    title : str
        Dream title.
    description : str
        Free-text dream description.
    category : str
        Dream category label.
    original_prompt : str
        Prompt the user originally typed. Defaults to *description*.
    providers : tuple[str, ...]
        Requested provider names.
    multi_model : bool
        Evaluate with every configured model of the requested providers
        rather than a single one.
    """

    dream_id: str
    user_id: str
    title: str
    description: str
    category: str = "general"
    original_prompt: str = ""
    providers: tuple[str, ...] = ("openai", "anthropic")
    multi_model: bool = True

    def __post_init__(self) -> None:
        if not self.original_prompt:
            self.original_prompt = self.description
        self.providers = tuple(self.providers)


@dataclass(frozen=True)
class DimensionScores:
    """The four rubric scores, each in ``[0, 100]``."""

    comprehension: float
    quality: float
    innovation: float
    feasibility: float

    @property
    def overall(self) -> float:
        """Arithmetic mean of the four dimensions."""
        return (self.comprehension + self.quality + self.innovation + self.feasibility) / 4

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in DIMENSIONS}


@dataclass(frozen=True)
class EvaluationMetadata:
    """Provenance of a single evaluation.

    Parameters
    ----------
    provider : str
        Provider name, or ``"consensus"`` for aggregated results.
    model : str
        Model identifier.
    tokens_used : int
        Total tokens reported by the provider.
    duration_ms : int
        Wall-clock latency of the provider call.
    parameters : dict
        Call parameters (temperature, max_tokens, prompt version, ...).
    prompt_hash : str
        Content hash of the rendered prompts.
    cost : float
        Cost attributed to this evaluation.
    """

    provider: str
    model: str
    tokens_used: int = 0
    duration_ms: int = 0
    parameters: dict[str, Any] = field(default_factory=dict)
    prompt_hash: str = ""
    cost: float = 0.0


@dataclass(frozen=True)
class EvaluationResult:
    """A validated, scored evaluation.

    ``overall_score`` and ``impossibility_score`` are always derived from
    ``scores`` and cannot be set independently.
    """

    scores: DimensionScores
    confidence: float
    reasoning: str
    metadata: EvaluationMetadata

    @property
    def overall_score(self) -> float:
        return self.scores.overall

    @property
    def impossibility_score(self) -> float:
        return 100 - self.scores.overall


@dataclass(frozen=True)
class HistorySample:
    """One point of a dream's score history."""

    impossibility_score: float
    confidence: float
    created_at: datetime | None = None


@dataclass(frozen=True)
class DecayAnalysis:
    """Change in impossibility between the two most recent evaluations."""

    current_score: float
    previous_score: float | None
    decay_rate: float
    trend_direction: str
    confidence: float
    sample_count: int = 1


@dataclass(frozen=True)
class TrendAnalysis:
    """Least-squares trend over a dream's full history."""

    initial_score: float
    current_score: float
    slope: float
    intercept: float
    total_improvement: float
    confidence: float
    evaluation_count: int
    span_days: int = 0
    dream_id: str = ""
    title: str = ""
    category: str = ""


@dataclass
class DreamRecord:
    """A persisted dream as seen by the engine."""

    id: str
    user_id: str
    title: str
    description: str
    category: str = "general"
    original_prompt: str = ""
    status: str = DREAM_ACTIVE
    created_at: datetime = field(default_factory=utcnow)

    def to_request(self, providers: tuple[str, ...] = ("openai", "anthropic"), multi_model: bool = True) -> EvaluationRequest:
        return EvaluationRequest(
            dream_id=self.id,
            user_id=self.user_id,
            title=self.title,
            description=self.description,
            category=self.category,
            original_prompt=self.original_prompt,
            providers=providers,
            multi_model=multi_model,
        )


@dataclass(frozen=True)
class EvaluationRecord:
    """Immutable persisted evaluation, success or failure.

    Parameters
    ----------
    id : str
        Record identifier.
    run_id : str
        Identifier shared by every record produced by one ``evaluate`` call.
    dream_id : str
        Evaluated dream.
    user_id : str
        Owner of the evaluation.
    provider : str
        Provider name, or ``"consensus"``.
    model : str
        Model identifier.
    status : str
        ``"completed"`` or ``"failed"``.
    scores : dict[str, float]
        Per-dimension scores (empty for failures).
    overall_score : float
        Mean of the dimension scores.
    impossibility_score : float
        ``100 - overall_score``; ``0`` for failures.
    confidence : float
        Model-reported confidence; ``0`` for failures.
    reasoning : str
        Model-provided reasoning.
    tokens_used : int
        Tokens consumed by the call.
    duration_ms : int
        Call latency.
    cost : float
        Cost charged against the daily budget.
    parameters : dict
        Call parameters.
    prompt_hash : str
        Content hash of the rendered prompts.
    error_message : str
        Failure reason (failures only).
    created_at : datetime
        Insertion time (UTC).
    """

    id: str
    run_id: str
    dream_id: str
    user_id: str
    provider: str
    model: str
    status: str
    scores: dict[str, float] = field(default_factory=dict)
    overall_score: float = 0.0
    impossibility_score: float = 0.0
    confidence: float = 0.0
    reasoning: str = ""
    tokens_used: int = 0
    duration_ms: int = 0
    cost: float = 0.0
    parameters: dict[str, Any] = field(default_factory=dict)
    prompt_hash: str = ""
    error_message: str = ""
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_result(
        cls,
        result: EvaluationResult,
        request: EvaluationRequest,
        *,
        run_id: str,
        created_at: datetime | None = None,
    ) -> EvaluationRecord:
        meta = result.metadata
        return cls(
            id=new_id(),
            run_id=run_id,
            dream_id=request.dream_id,
            user_id=request.user_id,
            provider=meta.provider,
            model=meta.model,
            status=STATUS_COMPLETED,
            scores=result.scores.as_dict(),
            overall_score=result.overall_score,
            impossibility_score=result.impossibility_score,
            confidence=result.confidence,
            reasoning=result.reasoning,
            tokens_used=meta.tokens_used,
            duration_ms=meta.duration_ms,
            cost=meta.cost,
            parameters=dict(meta.parameters),
            prompt_hash=meta.prompt_hash,
            created_at=created_at or utcnow(),
        )

    @classmethod
    def failure(
        cls,
        request: EvaluationRequest,
        target: ModelTarget,
        error: Exception,
        *,
        run_id: str,
        parameters: dict[str, Any] | None = None,
        duration_ms: int = 0,
        created_at: datetime | None = None,
    ) -> EvaluationRecord:
        return cls(
            id=new_id(),
            run_id=run_id,
            dream_id=request.dream_id,
            user_id=request.user_id,
            provider=target.provider,
            model=target.model,
            status=STATUS_FAILED,
            duration_ms=duration_ms,
            parameters=dict(parameters or {}),
            error_message=str(error),
            created_at=created_at or utcnow(),
        )

    def to_sample(self) -> HistorySample:
        return HistorySample(
            impossibility_score=self.impossibility_score,
            confidence=self.confidence,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class ScheduleCandidate:
    """A dream eligible for re-evaluation in this scheduler run."""

    dream: DreamRecord
    priority: str
    last_score: float | None = None
    last_confidence: float | None = None
    last_evaluated_at: datetime | None = None


@dataclass
class RunSummary:
    """Outcome of one scheduler pass.

    ``status`` is ``"completed"`` for a normal pass, ``"budget_exhausted"``
    when the daily budget was already spent before any candidate ran, and
    ``"rejected"`` when another pass was in progress.
    """

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    total_cost: float = 0.0
    status: str = "completed"
