"""Ovulation and fertility-window estimation from menstrual cycle history.

Calendar method only:

1. Completed cycles (those with an end date) are ordered by start date.
2. Cycle length is the start-to-start delta between consecutive completed
   cycles.  The most recent ``rolling_average_cycles`` lengths (default 6)
   are averaged and rounded half-up to a whole day.
3. Next period = start of the latest cycle + average length.
4. Ovulation = next period − luteal phase (fixed at 14 days).  Basal body
   temperature is deliberately not consulted.
5. Fertility status for ``today`` depends only on the distance in days to
   the predicted ovulation date.

Fewer than two completed cycles is a normal outcome (status ``unknown``, no
dates).  Malformed history raises ``CycleValidationError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from ovulink.errors import CycleValidationError
from ovulink.fertility.base import CycleRecord, FertilityStatus
from ovulink.fertility.config_loader import (
    FertilityConfig,
    OvulationConfig,
    get_fertility_config,
)
from ovulink.fertility.dates import add_days, days_between, mean, round_half_up, stdev

logger = logging.getLogger("ovulink.fertility.ovulation")

INSUFFICIENT_HISTORY_MESSAGE = "Not enough cycle data for prediction"


@dataclass
class Prediction:
    """Next-cycle prediction, recomputed on demand and never persisted.

    Attributes:
        fertility_status:         Band for ``as_of`` relative to ovulation.
        predicted_ovulation_date: Estimated next ovulation.
        predicted_period_date:    Estimated next period start.
        fertile_window_start:     First day of the fertile window.
        fertile_window_end:       Last day of the fertile window.
        average_cycle_length:     Rounded mean of the averaged lengths.
        std_cycle_length:         Sample standard deviation of those lengths.
        cycle_lengths:            The lengths that were averaged, oldest first.
        cycles_used:              ``len(cycle_lengths)``.
        last_period_start:        Anchor for the period prediction.
        last_period_duration:     ``end − start`` of the last completed cycle
                                  (display only).
        days_until_ovulation:     Signed days from ``as_of`` to ovulation.
        is_irregular:             True if lengths vary by more than the
                                  configured threshold.
        as_of:                    The "today" the status was evaluated against.
        message:                  Human-readable summary.
        warnings:                 Flags such as implausible cycle lengths.
    """

    fertility_status: FertilityStatus = FertilityStatus.unknown
    predicted_ovulation_date: date | None = None
    predicted_period_date: date | None = None
    fertile_window_start: date | None = None
    fertile_window_end: date | None = None
    average_cycle_length: int | None = None
    std_cycle_length: float | None = None
    cycle_lengths: list[int] = field(default_factory=list)
    cycles_used: int = 0
    last_period_start: date | None = None
    last_period_duration: int | None = None
    days_until_ovulation: int | None = None
    is_irregular: bool = False
    as_of: date | None = None
    message: str = INSUFFICIENT_HISTORY_MESSAGE
    warnings: list[str] = field(default_factory=list)

    @property
    def has_prediction(self) -> bool:
        return self.predicted_ovulation_date is not None


@dataclass
class CycleSummary:
    """Cycle-length statistics over the whole completed history."""

    lengths: list[int] = field(default_factory=list)
    average: int | None = None
    shortest: int | None = None
    longest: int | None = None

    @property
    def count(self) -> int:
        return len(self.lengths)

    @property
    def available(self) -> bool:
        return bool(self.lengths)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_cycles(cycles: Sequence[CycleRecord], today: date | None = None) -> None:
    """Check cycle history invariants.

    Args:
        cycles: Cycle records in any order.
        today:  Upper bound for observations in open cycles.  Writes pass
                the server date; reads leave it out, since an open cycle's
                logged days may lie after a historical ``as_of``.

    Raises:
        CycleValidationError: On the first offending record: an end date
            before the start date, a daily observation outside the cycle,
            two cycles starting the same day, or a completed cycle that runs
            into the next one.
    """
    for cycle in cycles:
        if cycle.end_date is not None and cycle.end_date < cycle.start_date:
            raise CycleValidationError(
                f"Cycle ends ({cycle.end_date}) before it starts ({cycle.start_date})",
                record_id=cycle.id,
            )
        upper = cycle.end_date or today
        for day in cycle.days:
            if day.date < cycle.start_date or (upper is not None and day.date > upper):
                raise CycleValidationError(
                    f"Observation on {day.date} falls outside cycle "
                    f"{cycle.start_date}..{upper or 'open'}",
                    record_id=cycle.id,
                )

    ordered = sorted(cycles, key=lambda c: c.start_date)
    for current, following in zip(ordered, ordered[1:]):
        if current.start_date == following.start_date:
            raise CycleValidationError(
                f"Two cycles start on {current.start_date}",
                record_id=following.id,
            )
        if current.end_date is not None and current.end_date >= following.start_date:
            raise CycleValidationError(
                f"Cycle starting {current.start_date} ends on {current.end_date}, "
                f"after the next cycle starts ({following.start_date})",
                record_id=current.id,
            )


def cycle_lengths(cycles: Sequence[CycleRecord]) -> list[int]:
    """Start-to-start lengths between consecutive completed cycles, oldest first."""
    completed = sorted((c for c in cycles if c.is_complete), key=lambda c: c.start_date)
    return [
        days_between(current.start_date, following.start_date)
        for current, following in zip(completed, completed[1:])
    ]


# ---------------------------------------------------------------------------
# Fertility status
# ---------------------------------------------------------------------------


def classify_fertility_status(
    ovulation_date: date | None,
    today: date,
    config: FertilityConfig | None = None,
) -> FertilityStatus:
    """Band ``today`` by its distance to the predicted ovulation date.

    Band edges are inclusive: with the default 1/3/5 bands, one day away is
    peak, three days high and five days medium.
    """
    if ovulation_date is None:
        return FertilityStatus.unknown
    oc = (config or get_fertility_config()).ovulation
    distance = abs(days_between(today, ovulation_date))
    if distance <= oc.peak_within_days:
        return FertilityStatus.peak
    if distance <= oc.high_within_days:
        return FertilityStatus.high
    if distance <= oc.medium_within_days:
        return FertilityStatus.medium
    return FertilityStatus.low


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------


class OvulationEstimator:
    """Predict ovulation and the next period from cycle history.

    Usage::

        estimator = OvulationEstimator()
        prediction = estimator.estimate(cycles, today=date(2024, 3, 10))
        print(prediction.predicted_ovulation_date, prediction.fertility_status)
    """

    def __init__(self, config: FertilityConfig | None = None) -> None:
        self._config = config or get_fertility_config()

    @property
    def _ov_config(self) -> OvulationConfig:
        return self._config.ovulation

    def estimate(self, cycles: Sequence[CycleRecord], today: date) -> Prediction:
        """Generate a prediction from the user's cycle history.

        Args:
            cycles: Cycle records in any order; open cycles are allowed.
            today:  Reference date for the fertility status.

        Returns:
            A Prediction.  With fewer than two completed cycles it carries
            ``fertility_status=unknown`` and no dates.

        Raises:
            CycleValidationError: If the history violates a cycle invariant.
        """
        oc = self._ov_config
        validate_cycles(cycles)

        prediction = Prediction(as_of=today)
        ordered = sorted(cycles, key=lambda c: c.start_date)
        completed = [c for c in ordered if c.is_complete]

        if len(completed) < 2:
            return prediction

        all_lengths = cycle_lengths(completed)
        lengths = all_lengths[-oc.rolling_average_cycles:]
        average = round_half_up(mean(lengths))
        spread = stdev(lengths)

        prediction.cycle_lengths = lengths
        prediction.cycles_used = len(lengths)
        prediction.average_cycle_length = average
        prediction.std_cycle_length = round(spread, 1)
        prediction.is_irregular = spread > oc.irregular_std_days

        last = completed[-1]
        prediction.last_period_duration = days_between(last.start_date, last.end_date)  # type: ignore[arg-type]

        for length in lengths:
            if not (oc.min_plausible_cycle_days <= length <= oc.max_plausible_cycle_days):
                prediction.warnings.append(
                    f"Cycle length of {length} days is outside the plausible range "
                    f"({oc.min_plausible_cycle_days}-{oc.max_plausible_cycle_days} days)"
                )

        for cycle in ordered[:-1]:
            if not cycle.is_complete:
                prediction.warnings.append(
                    f"Cycle starting {cycle.start_date} has no end date but a later "
                    "cycle exists; it was left out of the average"
                )

        # Latest period onset, even if that cycle is still open
        anchor = ordered[-1].start_date
        period = add_days(anchor, average)
        ovulation = add_days(period, -oc.luteal_phase_days)

        prediction.last_period_start = anchor
        prediction.predicted_period_date = period
        prediction.predicted_ovulation_date = ovulation
        prediction.fertile_window_start = add_days(ovulation, -oc.fertile_days_before)
        prediction.fertile_window_end = add_days(ovulation, oc.fertile_days_after)
        prediction.days_until_ovulation = days_between(today, ovulation)
        prediction.fertility_status = classify_fertility_status(ovulation, today, self._config)
        prediction.message = f"Prediction based on your last {len(lengths) + 1} cycles"

        logger.debug(
            "Prediction as of %s: lengths=%s avg=%d period=%s ovulation=%s status=%s",
            today, lengths, average, period, ovulation,
            prediction.fertility_status.value,
        )
        return prediction

    def summarize(self, cycles: Sequence[CycleRecord]) -> CycleSummary:
        """Cycle-length statistics over every completed cycle.

        Raises:
            CycleValidationError: If the history violates a cycle invariant.
        """
        validate_cycles(cycles)
        lengths = cycle_lengths(cycles)
        if not lengths:
            return CycleSummary()
        return CycleSummary(
            lengths=lengths,
            average=round_half_up(mean(lengths)),
            shortest=min(lengths),
            longest=max(lengths),
        )


def estimate(
    cycles: Sequence[CycleRecord],
    today: date,
    config: FertilityConfig | None = None,
) -> Prediction:
    """Module-level shortcut for ``OvulationEstimator(config).estimate``."""
    return OvulationEstimator(config).estimate(cycles, today)


def summarize_cycles(
    cycles: Sequence[CycleRecord],
    config: FertilityConfig | None = None,
) -> CycleSummary:
    """Module-level shortcut for ``OvulationEstimator(config).summarize``."""
    return OvulationEstimator(config).summarize(cycles)
