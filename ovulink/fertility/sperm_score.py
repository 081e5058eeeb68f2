"""Sperm health score calculator.

Reduces one semen analysis to a 0–100 score.  Each metric is scored against
its WHO lower reference limit (``min``) and an ``optimal`` value:

    value >= optimal          → 100
    min <= value < optimal    → 50 + 50 · (value − min) / (optimal − min)
    0 < value < min           → 50 · value / min
    value <= 0                → 0

The overall score is the mean of the metric scores that were measured, all
four weighted equally, rounded half-up.  A metric below its lower limit
therefore always pulls the score under what it would be at the limit, and a
test meeting every limit scores at least 50.

Reference ranges (from fertility_config.yaml):
    - count       15 million/ml  (optimal 40)
    - motility    40 %           (optimal 60)
    - morphology   4 %           (optimal 15)
    - volume       1.5 ml        (optimal 4)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ovulink.errors import SpermTestValidationError
from ovulink.fertility.base import SpermTest
from ovulink.fertility.config_loader import (
    SPERM_METRICS,
    FertilityConfig,
    ReferenceRange,
    SpermHealthConfig,
    get_fertility_config,
)
from ovulink.fertility.dates import round_half_up

logger = logging.getLogger("ovulink.fertility.sperm_score")

_ANALYSIS = {
    "excellent": "Your sperm health parameters are excellent, indicating optimal fertility potential.",
    "good": "Your sperm health parameters are good, indicating favorable fertility potential.",
    "fair": "Your sperm health parameters are fair, indicating moderate fertility potential.",
    "poor": (
        "Your sperm health parameters are below optimal levels, "
        "which may affect fertility potential."
    ),
    "unknown": "Not enough data to provide an accurate analysis.",
}

_RECOMMENDATIONS = {
    "count": (
        "Sperm count is below the recommended range. Consider lifestyle changes such as "
        "reducing alcohol consumption, quitting smoking, and maintaining a healthy weight."
    ),
    "motility": (
        "Sperm motility is below the recommended range. Regular exercise, a balanced diet "
        "rich in antioxidants, and reducing stress may help improve motility."
    ),
    "morphology": (
        "Sperm morphology is below the recommended range. Avoiding excessive heat exposure, "
        "reducing alcohol intake, and eating more fruits and vegetables may help improve morphology."
    ),
    "volume": (
        "Semen volume is below the recommended range. Staying well-hydrated, maintaining a "
        "balanced diet, and ensuring adequate zinc intake may help improve volume."
    ),
}


@dataclass
class MetricScore:
    """Score for one measured metric.

    Attributes:
        metric:    'count', 'motility', 'morphology' or 'volume'.
        value:     The measurement (None if not measured).
        score:     0–100 metric score, rounded (0 if not measured).
        reference: The range it was scored against.
        available: False if the metric was not measured.
    """

    metric: str
    value: float | None
    score: int
    reference: ReferenceRange
    available: bool = True

    @property
    def below_reference(self) -> bool:
        return self.available and self.value is not None and self.value < self.reference.min


@dataclass
class SpermHealthScore:
    """Full scoring result for one test.

    Attributes:
        score:                   0–100, or None when nothing was measured.
        category:                'excellent', 'good', 'fair', 'poor' or 'unknown'.
        analysis:                One-sentence interpretation.
        meets_reference_ranges:  True if every measured metric is at or above
                                 its lower reference limit.
        metrics:                 Per-metric breakdown.
        recommendations:         Advice for each metric below its limit.
    """

    score: int | None
    category: str
    analysis: str
    meets_reference_ranges: bool
    metrics: list[MetricScore] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.score is not None


_PERCENT_METRICS = ("motility", "morphology")


def validate_sperm_test(test: SpermTest) -> None:
    """Reject physically impossible measurements.

    Raises:
        SpermTestValidationError: If a metric is negative or a percentage
            metric exceeds 100.
    """
    for metric in SPERM_METRICS:
        value = test.metric(metric)
        if value is None:
            continue
        if value < 0 or (metric in _PERCENT_METRICS and value > 100):
            raise SpermTestValidationError(
                f"{metric} value {value} is out of range",
                details={"field": metric, "value": value},
            )


def score_metric(value: float, reference: ReferenceRange) -> float:
    """Unrounded 0–100 score of one measurement against its reference range."""
    if value >= reference.optimal:
        return 100.0
    if value >= reference.min:
        return 50.0 + (value - reference.min) / (reference.optimal - reference.min) * 50.0
    if value > 0:
        return value / reference.min * 50.0
    return 0.0


class SpermHealthScorer:
    """Score semen analyses against configured reference ranges.

    Usage::

        scorer = SpermHealthScorer()
        scorer.score(SpermTest(count=60, motility=60, morphology=10, volume=3))  # 89
    """

    def __init__(self, config: FertilityConfig | None = None) -> None:
        self._config = config or get_fertility_config()

    @property
    def _sh_config(self) -> SpermHealthConfig:
        return self._config.sperm_health

    def category(self, score: int | None) -> str:
        sh = self._sh_config
        if score is None or score <= 0:
            return "unknown"
        if score >= sh.excellent_threshold:
            return "excellent"
        if score >= sh.good_threshold:
            return "good"
        if score >= sh.fair_threshold:
            return "fair"
        return "poor"

    def score(self, test: SpermTest) -> int | None:
        """Return the 0–100 composite score, or None if nothing was measured."""
        validate_sperm_test(test)
        measured: list[float] = []
        for metric in SPERM_METRICS:
            value = test.metric(metric)
            if value is not None:
                measured.append(score_metric(value, self._config.reference_range(metric)))
        if not measured:
            return None
        return round_half_up(sum(measured) / len(measured))

    def analyze(self, test: SpermTest) -> SpermHealthScore:
        """Score a test and explain the result."""
        metrics: list[MetricScore] = []
        for metric in SPERM_METRICS:
            reference = self._config.reference_range(metric)
            value = test.metric(metric)
            if value is None:
                metrics.append(
                    MetricScore(metric=metric, value=None, score=0, reference=reference, available=False)
                )
                continue
            metrics.append(
                MetricScore(
                    metric=metric,
                    value=value,
                    score=round_half_up(score_metric(value, reference)),
                    reference=reference,
                )
            )

        overall = self.score(test)
        category = self.category(overall)
        below = [m for m in metrics if m.below_reference]

        logger.debug(
            "Sperm health score %s (%s): %s",
            overall, category,
            ", ".join(f"{m.metric}={m.score}" for m in metrics if m.available),
        )

        return SpermHealthScore(
            score=overall,
            category=category,
            analysis=_ANALYSIS[category],
            meets_reference_ranges=overall is not None and not below,
            metrics=metrics,
            recommendations=[_RECOMMENDATIONS[m.metric] for m in below],
        )


def score(test: SpermTest, config: FertilityConfig | None = None) -> int | None:
    """Module-level shortcut for ``SpermHealthScorer(config).score``."""
    return SpermHealthScorer(config).score(test)
