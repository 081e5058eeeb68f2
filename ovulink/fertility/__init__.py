"""Fertility prediction engine for Ovulink.

Pure, synchronous computations over records passed in by the caller.
Nothing here touches the database or the clock.

Modules:
    ovulation   — Calendar-based ovulation / next-period estimator
    sperm_score — 0–100 semen analysis score against WHO reference ranges
    trends      — First-vs-last trend analysis of sperm tests
"""

from ovulink.fertility.base import (
    CervicalMucus,
    CycleRecord,
    DailyObservation,
    FertilityStatus,
    FlowIntensity,
    OvulationTestResult,
    SpermTest,
)
from ovulink.fertility.ovulation import (
    CycleSummary,
    OvulationEstimator,
    Prediction,
    estimate,
    summarize_cycles,
)
from ovulink.fertility.sperm_score import SpermHealthScore, SpermHealthScorer, score
from ovulink.fertility.trends import SpermTrends, analyze_trends, calculate_trend

__all__ = [
    "CervicalMucus",
    "CycleRecord",
    "CycleSummary",
    "DailyObservation",
    "FertilityStatus",
    "FlowIntensity",
    "OvulationEstimator",
    "OvulationTestResult",
    "Prediction",
    "SpermHealthScore",
    "SpermHealthScorer",
    "SpermTest",
    "SpermTrends",
    "analyze_trends",
    "calculate_trend",
    "estimate",
    "score",
    "summarize_cycles",
]
