"""Storage collaborators for dreams and evaluation records."""

from dream_evaluate.storage.base import EvaluationStore
from dream_evaluate.storage.jsonl import JsonLinesEvaluationStore
from dream_evaluate.storage.memory import InMemoryEvaluationStore

__all__ = ["EvaluationStore", "InMemoryEvaluationStore", "JsonLinesEvaluationStore"]
