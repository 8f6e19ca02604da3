"""Tests for decay, trend, and history collapsing."""

from datetime import datetime, timedelta, timezone

import pytest

from dream_evaluate.evaluation.decay import decay, dream_history, rank_by_improvement, trend
from dream_evaluate.models import STATUS_FAILED, HistorySample, TrendAnalysis


def _history(*scores, confidence=80.0):
    return [HistorySample(impossibility_score=s, confidence=confidence) for s in scores]


class TestDecay:
    def test_empty_history_raises(self):
        with pytest.raises(ValueError):
            decay([])

    def test_single_sample(self):
        analysis = decay(_history(42.0))
        assert analysis.current_score == 42.0
        assert analysis.previous_score is None
        assert analysis.decay_rate == 0
        assert analysis.trend_direction == "stable"
        assert analysis.confidence == 50
        assert analysis.sample_count == 1

    def test_improving(self):
        analysis = decay(_history(40.0, 50.0))
        assert analysis.previous_score == 50.0
        assert analysis.decay_rate == pytest.approx(20.0)
        assert analysis.trend_direction == "improving"
        assert analysis.confidence == 70

    def test_worsening(self):
        analysis = decay(_history(60.0, 50.0))
        assert analysis.decay_rate == pytest.approx(-20.0)
        assert analysis.trend_direction == "worsening"
        assert analysis.confidence == 70

    def test_drop_from_eighty_to_sixty_is_improving(self):
        analysis = decay(_history(60.0, 80.0))
        assert analysis.current_score == 60.0
        assert analysis.previous_score == 80.0
        assert analysis.decay_rate == pytest.approx(25.0)
        assert analysis.trend_direction == "improving"

    def test_rise_from_sixty_to_eighty_is_worsening(self):
        analysis = decay(_history(80.0, 60.0))
        assert analysis.decay_rate == pytest.approx(-100 / 3)
        assert analysis.trend_direction == "worsening"

    def test_small_change_is_stable(self):
        analysis = decay(_history(52.0, 50.0))
        assert analysis.decay_rate == pytest.approx(-4.0)
        assert analysis.trend_direction == "stable"
        assert analysis.confidence == 50

    def test_stable_with_three_samples_has_higher_confidence(self):
        analysis = decay(_history(49.0, 50.0, 80.0))
        assert analysis.trend_direction == "stable"
        assert analysis.confidence == 70

    def test_previous_zero_is_stable(self):
        analysis = decay(_history(30.0, 0.0))
        assert analysis.decay_rate == 0
        assert analysis.trend_direction == "stable"

    def test_confidence_caps_at_ninety(self):
        analysis = decay(_history(10.0, 50.0, 60.0, 70.0, 80.0))
        assert analysis.trend_direction == "improving"
        assert analysis.confidence == 90


class TestTrend:
    def test_requires_two_samples(self):
        with pytest.raises(ValueError):
            trend(_history(50.0))

    def test_linear_fit(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        samples = [
            HistorySample(80.0, 60.0, start),
            HistorySample(70.0, 70.0, start + timedelta(days=10)),
            HistorySample(60.0, 80.0, start + timedelta(days=20, hours=1)),
        ]

        result = trend(samples)

        assert result.slope == pytest.approx(-10.0)
        assert result.intercept == pytest.approx(80.0)
        assert result.initial_score == 80.0
        assert result.current_score == 60.0
        assert result.total_improvement == pytest.approx(20.0)
        assert result.confidence == pytest.approx(70.0)
        assert result.evaluation_count == 3
        assert result.span_days == 21

    def test_rank_by_improvement(self):
        trends = [
            TrendAnalysis(50, 45, -5, 50, 5, 70, 2, dream_id="a"),
            TrendAnalysis(50, 20, -30, 50, 30, 70, 2, dream_id="b"),
            TrendAnalysis(50, 60, 10, 50, -10, 70, 2, dream_id="c"),
        ]
        assert [t.dream_id for t in rank_by_improvement(trends)] == ["b", "a", "c"]


class TestDreamHistory:
    def test_one_sample_per_run_preferring_consensus(self, make_record, days_ago):
        first = days_ago(40)
        records = [
            make_record(run_id="r1", provider="openai", impossibility=30.0, created_at=first),
            make_record(run_id="r1", provider="anthropic", impossibility=50.0, created_at=first),
            make_record(run_id="r1", provider="consensus", impossibility=35.0, created_at=first),
            make_record(run_id="r2", provider="anthropic", impossibility=20.0, created_at=days_ago(1)),
            make_record(run_id="r3", provider="openai", status=STATUS_FAILED, created_at=days_ago(0)),
        ]

        history = dream_history(records)

        assert [s.impossibility_score for s in history] == [20.0, 35.0]

    def test_empty(self):
        assert dream_history([]) == []
