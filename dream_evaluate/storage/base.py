"""Abstract storage collaborator for dreams and evaluation records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import datetime

from dream_evaluate.models import DreamRecord, EvaluationRecord


class EvaluationStore(ABC):
    """Append-only store of evaluation records plus read access to dreams.

    Records are never updated in place; every read-side figure (spend,
    request counts, history) is aggregated from them on demand.
    """

    @abstractmethod
    def add_dream(self, dream: DreamRecord) -> None:
        """Insert or replace a dream."""

    @abstractmethod
    def get_dream(self, dream_id: str) -> DreamRecord | None:
        """Return the dream with *dream_id*, or ``None``."""

    @abstractmethod
    def list_dreams(self, *, status: str | None = None, user_id: str | None = None) -> list[DreamRecord]:
        """Return dreams ordered by creation time, optionally filtered."""

    @abstractmethod
    def create(self, record: EvaluationRecord) -> None:
        """Append an immutable evaluation record."""

    @abstractmethod
    def records(self) -> Iterable[EvaluationRecord]:
        """Iterate over every stored record in insertion order."""

    def query(
        self,
        *,
        dream_id: str | None = None,
        user_id: str | None = None,
        status: str | None = None,
        provider: str | None = None,
        model: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[EvaluationRecord]:
        """Return records matching every given filter.

        Parameters
        ----------
        dream_id, user_id, status, provider, model : str | None
            Exact-match filters.
        start : datetime | None
            Inclusive lower bound on ``created_at``.
        end : datetime | None
            Exclusive upper bound on ``created_at``.
        limit : int | None
            Maximum number of records to return after ordering.
        newest_first : bool
            Order by ``created_at`` descending (default) or ascending.

        Returns
        -------
        list[EvaluationRecord]
        """
        matches = [
            (position, r)
            for position, r in enumerate(self.records())
            if (dream_id is None or r.dream_id == dream_id)
            and (user_id is None or r.user_id == user_id)
            and (status is None or r.status == status)
            and (provider is None or r.provider == provider)
            and (model is None or r.model == model)
            and (start is None or r.created_at >= start)
            and (end is None or r.created_at < end)
        ]
        # insertion position breaks timestamp ties
        matches.sort(key=lambda item: (item[1].created_at, item[0]), reverse=newest_first)
        ordered = [r for _, r in matches]
        if limit is not None:
            ordered = ordered[:limit]
        return ordered

    def aggregate(
        self,
        fields: Sequence[str],
        group_by: Sequence[str] = (),
        **filters,
    ) -> dict[tuple, dict[str, float]]:
        """Sum numeric *fields* over matching records, grouped by *group_by*.

        Each group also carries a ``"count"`` entry.

        Returns
        -------
        dict[tuple, dict[str, float]]
            Keyed by the tuple of group-by values (``()`` when ungrouped).
        """
        groups: dict[tuple, dict[str, float]] = {}
        for record in self.query(newest_first=False, **filters):
            key = tuple(getattr(record, name) for name in group_by)
            bucket = groups.setdefault(key, {"count": 0, **{name: 0.0 for name in fields}})
            bucket["count"] += 1
            for name in fields:
                bucket[name] += getattr(record, name) or 0
        return groups
