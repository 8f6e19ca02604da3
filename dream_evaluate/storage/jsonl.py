"""Append-only JSON-lines evaluation store backed by a directory."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

from dream_evaluate.models import DreamRecord, EvaluationRecord
from dream_evaluate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)

DREAMS_FILENAME = "dreams.jsonl"
EVALUATIONS_FILENAME = "evaluations.jsonl"


class JsonLinesEvaluationStore(EvaluationStore):
    """Store that appends one JSON object per line.

    Dreams live in ``dreams.jsonl`` (last line per id wins) and evaluation
    records in ``evaluations.jsonl``.  Both files are created on demand.

    Parameters
    ----------
    directory : str | Path
        Directory holding the two files.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._dir

    def add_dream(self, dream: DreamRecord) -> None:
        self._append(DREAMS_FILENAME, _to_json(asdict(dream)))
        logger.debug("Stored dream %s in %s", dream.id, self._dir)

    def get_dream(self, dream_id: str) -> DreamRecord | None:
        return self._dreams().get(dream_id)

    def list_dreams(self, *, status: str | None = None, user_id: str | None = None) -> list[DreamRecord]:
        return sorted(
            (
                d
                for d in self._dreams().values()
                if (status is None or d.status == status) and (user_id is None or d.user_id == user_id)
            ),
            key=lambda d: d.created_at,
        )

    def create(self, record: EvaluationRecord) -> None:
        self._append(EVALUATIONS_FILENAME, _to_json(asdict(record)))

    def records(self) -> Iterable[EvaluationRecord]:
        return [
            EvaluationRecord(**{**row, "created_at": datetime.fromisoformat(row["created_at"])})
            for row in self._read(EVALUATIONS_FILENAME)
        ]

    def _dreams(self) -> dict[str, DreamRecord]:
        dreams: dict[str, DreamRecord] = {}
        for row in self._read(DREAMS_FILENAME):
            row["created_at"] = datetime.fromisoformat(row["created_at"])
            dreams[row["id"]] = DreamRecord(**row)
        return dreams

    def _append(self, filename: str, line: str) -> None:
        with self._lock, open(self._dir / filename, "a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def _read(self, filename: str) -> list[dict[str, Any]]:
        path = self._dir / filename
        if not path.exists():
            return []
        with self._lock, open(path, encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]


def _to_json(data: dict[str, Any]) -> str:
    return json.dumps(data, default=_encode, sort_keys=True)


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)
