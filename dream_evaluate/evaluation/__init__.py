"""Dream scoring: prompt rendering, response parsing, consensus, and decay."""

from dream_evaluate.evaluation.consensus import consensus, consensus_weights
from dream_evaluate.evaluation.decay import decay, dream_history, rank_by_improvement, trend
from dream_evaluate.evaluation.orchestrator import EvaluationOrchestrator
from dream_evaluate.evaluation.parser import ScoreResponse, extract_json_object, parse_score_response
from dream_evaluate.evaluation.prompts import PromptSpec, RenderedPrompt, load_prompt_spec, render

__all__ = [
    "EvaluationOrchestrator",
    "PromptSpec",
    "RenderedPrompt",
    "ScoreResponse",
    "consensus",
    "consensus_weights",
    "decay",
    "dream_history",
    "extract_json_object",
    "load_prompt_spec",
    "parse_score_response",
    "rank_by_improvement",
    "render",
    "trend",
]
