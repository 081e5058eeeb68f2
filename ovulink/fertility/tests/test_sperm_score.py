"""Tests for the sperm health score calculator."""

from __future__ import annotations

import pytest

from ovulink.errors import ErrorKind, SpermTestValidationError
from ovulink.fertility.base import SpermTest
from ovulink.fertility.config_loader import FertilityConfig
from ovulink.fertility.sperm_score import (
    SpermHealthScorer,
    score,
    score_metric,
    validate_sperm_test,
)


class TestScoreMetric:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, 0.0),
            (7.5, 25.0),
            (15, 50.0),
            (27.5, 75.0),
            (40, 100.0),
            (250, 100.0),
        ],
    )
    def test_count_piecewise(
        self, fertility_config: FertilityConfig, value: float, expected: float
    ) -> None:
        assert score_metric(value, fertility_config.reference_range("count")) == pytest.approx(expected)

    def test_monotonic_in_value(self, fertility_config: FertilityConfig) -> None:
        ref = fertility_config.reference_range("motility")
        scores = [score_metric(v, ref) for v in range(0, 101, 5)]
        assert scores == sorted(scores)


class TestSpermHealthScorer:
    def test_comfortable_test_scores_89(
        self, fertility_config: FertilityConfig, comfortable_test: SpermTest
    ) -> None:
        assert score(comfortable_test, fertility_config) == 89

    def test_threshold_test_scores_exactly_50(
        self, fertility_config: FertilityConfig, threshold_test: SpermTest
    ) -> None:
        assert score(threshold_test, fertility_config) == 50

    def test_threshold_scores_below_comfortable(
        self,
        fertility_config: FertilityConfig,
        threshold_test: SpermTest,
        comfortable_test: SpermTest,
    ) -> None:
        assert score(threshold_test, fertility_config) < score(comfortable_test, fertility_config)

    def test_below_threshold_metric_pulls_score_down(
        self, fertility_config: FertilityConfig, threshold_test: SpermTest
    ) -> None:
        low = SpermTest(count=5, motility=40, morphology=4, volume=1.5)
        assert score(low, fertility_config) < score(threshold_test, fertility_config)

    def test_all_optimal_scores_100(self, fertility_config: FertilityConfig) -> None:
        assert score(SpermTest(count=100, motility=80, morphology=20, volume=5), fertility_config) == 100

    def test_missing_metrics_are_skipped(self, fertility_config: FertilityConfig) -> None:
        # count 100, motility 50 (75) -> mean 87.5 -> 88
        assert score(SpermTest(count=100, motility=50), fertility_config) == 88

    def test_nothing_measured_is_none(self, fertility_config: FertilityConfig) -> None:
        scorer = SpermHealthScorer(fertility_config)
        assert scorer.score(SpermTest()) is None
        result = scorer.analyze(SpermTest())
        assert result.score is None
        assert result.category == "unknown"
        assert not result.available
        assert not result.meets_reference_ranges

    def test_all_zero_is_zero_and_unknown(self, fertility_config: FertilityConfig) -> None:
        result = SpermHealthScorer(fertility_config).analyze(
            SpermTest(count=0, motility=0, morphology=0, volume=0)
        )
        assert result.score == 0
        assert result.category == "unknown"

    @pytest.mark.parametrize(
        "value, expected",
        [(None, "unknown"), (0, "unknown"), (1, "poor"), (39, "poor"), (40, "fair"),
         (59, "fair"), (60, "good"), (79, "good"), (80, "excellent"), (100, "excellent")],
    )
    def test_categories(
        self, fertility_config: FertilityConfig, value: int | None, expected: str
    ) -> None:
        assert SpermHealthScorer(fertility_config).category(value) == expected


class TestAnalysis:
    def test_comfortable_test_meets_reference_ranges(
        self, fertility_config: FertilityConfig, comfortable_test: SpermTest
    ) -> None:
        result = SpermHealthScorer(fertility_config).analyze(comfortable_test)
        assert result.category == "excellent"
        assert result.meets_reference_ranges
        assert result.recommendations == []
        assert [m.metric for m in result.metrics] == ["count", "motility", "morphology", "volume"]
        assert [m.score for m in result.metrics] == [100, 100, 77, 80]

    def test_threshold_test_meets_reference_ranges(
        self, fertility_config: FertilityConfig, threshold_test: SpermTest
    ) -> None:
        result = SpermHealthScorer(fertility_config).analyze(threshold_test)
        assert result.score == 50
        assert result.category == "fair"
        assert result.meets_reference_ranges

    def test_recommendations_for_metrics_below_reference(
        self, fertility_config: FertilityConfig
    ) -> None:
        result = SpermHealthScorer(fertility_config).analyze(
            SpermTest(count=10, motility=30, morphology=8, volume=2)
        )
        below = [m.metric for m in result.metrics if m.below_reference]
        assert below == ["count", "motility"]
        assert len(result.recommendations) == 2
        assert result.recommendations[0].startswith("Sperm count is below")
        assert result.recommendations[1].startswith("Sperm motility is below")
        assert not result.meets_reference_ranges

    def test_unmeasured_metric_is_marked_unavailable(
        self, fertility_config: FertilityConfig
    ) -> None:
        result = SpermHealthScorer(fertility_config).analyze(SpermTest(count=50))
        by_metric = {m.metric: m for m in result.metrics}
        assert by_metric["count"].available
        assert not by_metric["volume"].available
        assert not by_metric["volume"].below_reference
        assert result.meets_reference_ranges


class TestValidation:
    @pytest.mark.parametrize(
        "test",
        [SpermTest(count=-1), SpermTest(volume=-0.5), SpermTest(motility=101), SpermTest(morphology=250)],
    )
    def test_impossible_measurements_raise(
        self, fertility_config: FertilityConfig, test: SpermTest
    ) -> None:
        with pytest.raises(SpermTestValidationError) as exc_info:
            SpermHealthScorer(fertility_config).analyze(test)
        assert exc_info.value.kind == ErrorKind.validation_error

    def test_count_above_100_is_allowed(self, fertility_config: FertilityConfig) -> None:
        validate_sperm_test(SpermTest(count=250))
