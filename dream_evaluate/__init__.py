"""Multi-provider dream scoring, consensus, decay tracking, and budgeted re-evaluation."""

from dream_evaluate.analytics import decay_trends, global_benchmarks, user_metrics
from dream_evaluate.api import EvaluationOutcome, analyze_decay, evaluate_dream
from dream_evaluate.config import EngineConfig, load_config
from dream_evaluate.costs import CostSummary, CostTracker, RateLimitStatus
from dream_evaluate.evaluation import EvaluationOrchestrator, consensus, decay, trend
from dream_evaluate.models import (
    DecayAnalysis,
    DimensionScores,
    DreamRecord,
    EvaluationRecord,
    EvaluationRequest,
    EvaluationResult,
    ModelTarget,
    RunSummary,
)
from dream_evaluate.scheduler import DreamEvaluationScheduler, PeriodicTrigger, run_scheduled_evaluations

__all__ = [
    "CostSummary",
    "CostTracker",
    "DecayAnalysis",
    "DimensionScores",
    "DreamEvaluationScheduler",
    "DreamRecord",
    "EngineConfig",
    "EvaluationOrchestrator",
    "EvaluationOutcome",
    "EvaluationRecord",
    "EvaluationRequest",
    "EvaluationResult",
    "ModelTarget",
    "PeriodicTrigger",
    "RateLimitStatus",
    "RunSummary",
    "analyze_decay",
    "consensus",
    "decay",
    "decay_trends",
    "evaluate_dream",
    "global_benchmarks",
    "load_config",
    "run_scheduled_evaluations",
    "trend",
    "user_metrics",
]
