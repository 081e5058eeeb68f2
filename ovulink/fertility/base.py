"""Canonical records consumed by the fertility engine.

These plain dataclasses are what the estimator and scorer operate on.  The
storage layer and the API both convert to and from them, so the core never
sees a database row or a request body.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CervicalMucus(str, Enum):
    dry = "dry"
    sticky = "sticky"
    creamy = "creamy"
    watery = "watery"
    egg_white = "egg_white"


class OvulationTestResult(str, Enum):
    negative = "negative"
    positive = "positive"


class FlowIntensity(str, Enum):
    none = "none"
    spotting = "spotting"
    light = "light"
    medium = "medium"
    heavy = "heavy"


class FertilityStatus(str, Enum):
    peak = "peak"
    high = "high"
    medium = "medium"
    low = "low"
    unknown = "unknown"


# ---------------------------------------------------------------------------
# Female health
# ---------------------------------------------------------------------------


@dataclass
class DailyObservation:
    """One day of logged cycle observations.

    Attributes:
        date:            Calendar date of the observation.
        temperature_f:   Basal body temperature in °F, one decimal.
        cervical_mucus:  Cervical mucus category.
        ovulation_test:  LH test result.
        flow:            Menstruation intensity.
        notes:           Free text.
    """

    date: date
    temperature_f: float | None = None
    cervical_mucus: CervicalMucus | None = None
    ovulation_test: OvulationTestResult | None = None
    flow: FlowIntensity | None = None
    notes: str | None = None


@dataclass
class CycleRecord:
    """A single menstrual cycle.

    Attributes:
        id:          Identifier in the store (None for unsaved records).
        user_id:     Owning user.
        start_date:  First day of menstrual flow.
        end_date:    Set once the cycle is closed.
        flow:        Overall flow intensity for the period.
        notes:       Free text.
        days:        Daily observations, ordered by date.
    """

    start_date: date
    end_date: date | None = None
    id: Any = None
    user_id: str | None = None
    flow: FlowIntensity | None = None
    notes: str | None = None
    days: list[DailyObservation] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.end_date is not None


# ---------------------------------------------------------------------------
# Male health
# ---------------------------------------------------------------------------


@dataclass
class SpermTest:
    """Quantitative results of one semen analysis.

    Any metric may be missing; the scorer averages over those present.

    Attributes:
        count:      Concentration in million/ml.
        motility:   Percent motile.
        morphology: Percent normal forms.
        volume:     Ejaculate volume in ml.
        date:       Test date (needed for trends only).
        id:         Identifier in the store.
        user_id:    Owning user.
        notes:      Free text.
    """

    count: float | None = None
    motility: float | None = None
    morphology: float | None = None
    volume: float | None = None
    date: date | None = None
    id: Any = None
    user_id: str | None = None
    notes: str | None = None

    def metric(self, name: str) -> float | None:
        return getattr(self, name)
