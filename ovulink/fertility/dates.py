"""Date arithmetic and small statistics helpers for the fertility engine."""

from __future__ import annotations

import calendar
import math
import statistics
from datetime import date, timedelta
from typing import Sequence


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative if ``end`` is earlier)."""
    return (end - start).days


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    ``round()`` uses banker's rounding (``round(28.5) == 28``), which would
    make a 28.5-day average predict a day early.
    """
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean.

    Raises:
        ValueError: If ``values`` is empty.
    """
    if not values:
        raise ValueError("mean() of an empty sequence")
    return statistics.fmean(values)


def stdev(values: Sequence[float]) -> float:
    """Sample standard deviation, 0.0 for fewer than two values."""
    return statistics.stdev(values) if len(values) > 1 else 0.0


def months_ago(today: date, months: int) -> date:
    """The same day-of-month ``months`` calendar months before ``today``.

    Clamps to the last day of the target month (``months_ago(Mar 31, 1)``
    is Feb 28/29).
    """
    total = today.year * 12 + (today.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(today.day, last_day))
