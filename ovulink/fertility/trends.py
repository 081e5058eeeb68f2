"""Sperm health trend analysis.

Compares the oldest and newest value of each metric (and of the overall
score) within a look-back window.  A change beyond ±``trend_threshold_pct``
(default 5 %) is reported as improving or declining.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from ovulink.fertility.base import SpermTest
from ovulink.fertility.config_loader import SPERM_METRICS, FertilityConfig, get_fertility_config
from ovulink.fertility.dates import months_ago
from ovulink.fertility.sperm_score import SpermHealthScorer

logger = logging.getLogger("ovulink.fertility.trends")


@dataclass
class TrendPoint:
    date: date
    value: float


@dataclass
class Trend:
    """Direction of one series.

    Attributes:
        direction:  'improving', 'declining', 'stable' or 'unknown'.
        percentage: Rounded percent change from first to last value.
        message:    Human-readable summary.
    """

    direction: str
    percentage: int
    message: str


@dataclass
class ScoredTest:
    date: date
    score: int | None


@dataclass
class SpermTrends:
    """Trend analysis over a look-back window.

    Attributes:
        available:  False when fewer than two tests fall in the window.
        months:     Window length in months.
        start_date: First day of the window.
        metrics:    Trend per metric name.
        overall:    Trend of the composite score.
        records:    Per-test scores, oldest first.
        message:    Human-readable summary.
    """

    available: bool
    months: int
    start_date: date
    message: str
    metrics: dict[str, Trend] = field(default_factory=dict)
    overall: Trend | None = None
    records: list[ScoredTest] = field(default_factory=list)


def calculate_trend(points: Sequence[TrendPoint], threshold_pct: float = 5.0) -> Trend:
    """Classify the change between the oldest and newest point."""
    if len(points) < 2:
        return Trend(direction="unknown", percentage=0, message="Not enough data")

    ordered = sorted(points, key=lambda p: p.date)
    first = ordered[0].value
    last = ordered[-1].value

    if first == 0:
        if last > 0:
            return Trend(direction="improving", percentage=0, message="Improving from zero baseline")
        return Trend(direction="stable", percentage=0, message="No change from zero baseline")

    change = (last - first) * 100.0 / first
    # Halves round toward +inf, so -7.5 % reports as -7
    percentage = math.floor(change + 0.5)

    if change > threshold_pct:
        return Trend("improving", percentage, f"Improving by {abs(percentage)}%")
    if change < -threshold_pct:
        return Trend("declining", percentage, f"Declining by {abs(percentage)}%")
    return Trend("stable", percentage, "No significant change")


def analyze_trends(
    tests: Sequence[SpermTest],
    today: date,
    months: int = 6,
    config: FertilityConfig | None = None,
) -> SpermTrends:
    """Trend every metric and the composite score over the last ``months`` months.

    Tests without a date, or dated before the window, are ignored.
    """
    cfg = config or get_fertility_config()
    threshold = cfg.sperm_health.trend_threshold_pct
    start = months_ago(today, months)

    in_window = sorted(
        (t for t in tests if t.date is not None and start <= t.date <= today),
        key=lambda t: t.date,  # type: ignore[arg-type, return-value]
    )

    if len(in_window) < 2:
        return SpermTrends(
            available=False,
            months=months,
            start_date=start,
            message="Not enough data for trend analysis",
        )

    scorer = SpermHealthScorer(cfg)
    records = [ScoredTest(date=t.date, score=scorer.score(t)) for t in in_window]  # type: ignore[arg-type]

    metric_trends: dict[str, Trend] = {}
    for metric in SPERM_METRICS:
        points = [
            TrendPoint(date=t.date, value=t.metric(metric))  # type: ignore[arg-type]
            for t in in_window
            if t.metric(metric) is not None
        ]
        metric_trends[metric] = calculate_trend(points, threshold)

    overall = calculate_trend(
        [TrendPoint(date=r.date, value=r.score) for r in records if r.score is not None],
        threshold,
    )

    logger.debug(
        "Sperm trends over %d tests since %s: overall=%s",
        len(in_window), start, overall.direction,
    )

    return SpermTrends(
        available=True,
        months=months,
        start_date=start,
        message=(
            f"Trend analysis based on {len(in_window)} records "
            f"over the past {months} months"
        ),
        metrics=metric_trends,
        overall=overall,
        records=records,
    )
