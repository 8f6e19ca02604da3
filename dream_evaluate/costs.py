"""Read-side cost and request accounting over persisted evaluation records.

Nothing here keeps a running counter: every figure is aggregated from the
append-only record store when asked for, so concurrent writers can never
lose an update.  The price is a fresh scan on every check.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from dream_evaluate.models import CONSENSUS_PROVIDER, STATUS_COMPLETED, utcnow
from dream_evaluate.storage.base import EvaluationStore

logger = logging.getLogger(__name__)


@dataclass
class ModelUsage:
    """Spend attributed to one model."""

    cost: float = 0.0
    tokens: int = 0
    requests: int = 0


@dataclass
class ProviderUsage:
    """Spend attributed to one provider, broken down by model."""

    cost: float = 0.0
    tokens: int = 0
    requests: int = 0
    models: dict[str, ModelUsage] = field(default_factory=dict)


@dataclass
class CostSummary:
    """Totals for a date range with a provider/model breakdown."""

    total_cost: float = 0.0
    total_tokens: int = 0
    total_requests: int = 0
    breakdown: dict[str, ProviderUsage] = field(default_factory=dict)


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of a per-user daily rate-limit check."""

    allowed: bool
    remaining: int
    reset_time: datetime


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return ``[midnight, next midnight)`` in UTC for *day*."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class CostTracker:
    """Aggregate cost, tokens, and request counts from an evaluation store.

    Parameters
    ----------
    store : EvaluationStore
        Source of evaluation records.
    clock : Callable[[], datetime] | None
        Source of "now"; determines which UTC day is "today".
    """

    def __init__(self, store: EvaluationStore, *, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or utcnow

    def today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    def summarize(self, start: datetime, end: datetime, user_id: str | None = None) -> CostSummary:
        """Summarize completed evaluations created in ``[start, end)``.

        Consensus records are excluded; their members already carry the
        spend.

        Parameters
        ----------
        start : datetime
            Inclusive lower bound.
        end : datetime
            Exclusive upper bound.
        user_id : str | None
            Restrict to one user's evaluations.

        Returns
        -------
        CostSummary
        """
        groups = self._store.aggregate(
            ("cost", "tokens_used"),
            group_by=("provider", "model"),
            status=STATUS_COMPLETED,
            user_id=user_id,
            start=start,
            end=end,
        )

        summary = CostSummary()
        for (provider, model), totals in sorted(groups.items()):
            if provider == CONSENSUS_PROVIDER:
                continue
            cost = totals["cost"]
            tokens = int(totals["tokens_used"])
            requests = int(totals["count"])

            usage = summary.breakdown.setdefault(provider, ProviderUsage())
            usage.cost += cost
            usage.tokens += tokens
            usage.requests += requests
            usage.models[model] = ModelUsage(cost=cost, tokens=tokens, requests=requests)

            summary.total_cost += cost
            summary.total_tokens += tokens
            summary.total_requests += requests
        return summary

    def daily_spend(self, day: date | None = None) -> float:
        """Return the cost of completed evaluations on *day* (default today)."""
        start, end = day_bounds(day or self.today())
        return self.summarize(start, end).total_cost

    def model_requests(self, model: str, day: date | None = None) -> int:
        """Count provider requests (success or failure) for *model* on *day*."""
        start, end = day_bounds(day or self.today())
        groups = self._store.aggregate((), model=model, start=start, end=end)
        return int(sum(bucket["count"] for bucket in groups.values()))

    def check_rate_limit(self, user_id: str, daily_limit: int = 10) -> RateLimitStatus:
        """Check whether *user_id* may request another evaluation today.

        Parameters
        ----------
        user_id : str
            User to check.
        daily_limit : int
            Maximum evaluation records per user per UTC day.

        Returns
        -------
        RateLimitStatus
            ``reset_time`` is the next UTC midnight.
        """
        start, end = day_bounds(self.today())
        count = len(self._store.query(user_id=user_id, start=start, end=end))
        status = RateLimitStatus(
            allowed=count < daily_limit,
            remaining=max(0, daily_limit - count),
            reset_time=end,
        )
        if not status.allowed:
            logger.info("Rate limit reached user=%s count=%d limit=%d", user_id, count, daily_limit)
        return status
