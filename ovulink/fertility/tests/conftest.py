"""Shared fixtures and record builders for fertility engine tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from ovulink.fertility.base import CycleRecord, SpermTest
from ovulink.fertility.config_loader import FertilityConfig, load_fertility_config

TEST_DATE = date(2024, 3, 10)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fertility_config() -> FertilityConfig:
    """Load the real fertility config for tests."""
    return load_fertility_config()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_cycle(start: date, period_days: int | None = 5) -> CycleRecord:
    """A cycle starting ``start``; ``period_days=None`` leaves it open."""
    end = start + timedelta(days=period_days - 1) if period_days is not None else None
    return CycleRecord(start_date=start, end_date=end)


def build_cycles(first_start: date, lengths: list[int], open_last: bool = False) -> list[CycleRecord]:
    """Consecutive cycles whose start-to-start deltas are ``lengths``."""
    starts = [first_start]
    for length in lengths:
        starts.append(starts[-1] + timedelta(days=length))
    cycles = [make_cycle(s) for s in starts]
    if open_last:
        cycles[-1].end_date = None
    return cycles


@pytest.fixture
def example_cycles() -> list[CycleRecord]:
    """Three completed cycles 28 days apart, starting 2024-01-01."""
    return [
        CycleRecord(start_date=date(2024, 1, 1), end_date=date(2024, 1, 5)),
        CycleRecord(start_date=date(2024, 1, 29), end_date=date(2024, 2, 2)),
        CycleRecord(start_date=date(2024, 2, 26), end_date=date(2024, 3, 2)),
    ]


@pytest.fixture
def comfortable_test() -> SpermTest:
    return SpermTest(count=60, motility=60, morphology=10, volume=3, date=TEST_DATE)


@pytest.fixture
def threshold_test() -> SpermTest:
    return SpermTest(count=15, motility=40, morphology=4, volume=1.5, date=TEST_DATE)
