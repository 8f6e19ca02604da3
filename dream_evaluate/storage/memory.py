"""In-process evaluation store."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from dream_evaluate.models import DreamRecord, EvaluationRecord
from dream_evaluate.storage.base import EvaluationStore


class InMemoryEvaluationStore(EvaluationStore):
    """Thread-safe store holding everything in lists.

    Suitable for tests and single-process use.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._dreams: dict[str, DreamRecord] = {}
        self._records: list[EvaluationRecord] = []

    def add_dream(self, dream: DreamRecord) -> None:
        with self._lock:
            self._dreams[dream.id] = dream

    def get_dream(self, dream_id: str) -> DreamRecord | None:
        return self._dreams.get(dream_id)

    def list_dreams(self, *, status: str | None = None, user_id: str | None = None) -> list[DreamRecord]:
        with self._lock:
            dreams = list(self._dreams.values())
        return sorted(
            (
                d
                for d in dreams
                if (status is None or d.status == status) and (user_id is None or d.user_id == user_id)
            ),
            key=lambda d: d.created_at,
        )

    def create(self, record: EvaluationRecord) -> None:
        with self._lock:
            self._records.append(record)

    def records(self) -> Iterable[EvaluationRecord]:
        with self._lock:
            return list(self._records)
