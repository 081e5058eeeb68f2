"""Pydantic models for menstrual cycles, daily observations and predictions."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import Field, model_validator

from ovulink.fertility.base import (
    CervicalMucus,
    CycleRecord,
    DailyObservation,
    FertilityStatus,
    FlowIntensity,
    OvulationTestResult,
)
from ovulink.models.base import OvulinkBase


# ---------- Daily observations ----------

class DailyObservationBase(OvulinkBase):
    date: date
    temperature_f: float | None = Field(default=None, ge=90.0, le=110.0)
    cervical_mucus: CervicalMucus | None = None
    ovulation_test: OvulationTestResult | None = None
    flow: FlowIntensity | None = None
    notes: str | None = Field(default=None, max_length=1000)


class DailyObservationCreate(DailyObservationBase):
    def to_record(self) -> DailyObservation:
        return DailyObservation(
            date=self.date,
            temperature_f=round(self.temperature_f, 1) if self.temperature_f is not None else None,
            cervical_mucus=self.cervical_mucus,
            ovulation_test=self.ovulation_test,
            flow=self.flow,
            notes=self.notes,
        )


class DailyObservationRead(DailyObservationBase):
    pass


class ObservationRead(DailyObservationBase):
    """A daily observation listed across cycles."""

    cycle_id: uuid.UUID


# ---------- Cycles ----------

class CycleBase(OvulinkBase):
    start_date: date
    end_date: date | None = None
    flow: FlowIntensity | None = None
    notes: str | None = Field(default=None, max_length=1000)


class CycleCreate(CycleBase):
    days: list[DailyObservationCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "CycleCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def to_record(self) -> CycleRecord:
        return CycleRecord(
            start_date=self.start_date,
            end_date=self.end_date,
            flow=self.flow,
            notes=self.notes,
            days=sorted((d.to_record() for d in self.days), key=lambda d: d.date),
        )


class CycleUpdate(OvulinkBase):
    start_date: date | None = None
    end_date: date | None = None
    flow: FlowIntensity | None = None
    notes: str | None = Field(default=None, max_length=1000)


class CycleRead(CycleBase):
    id: uuid.UUID
    user_id: str
    days: list[DailyObservationRead] = Field(default_factory=list)
    is_complete: bool


class CycleSummaryRead(OvulinkBase):
    count: int
    lengths: list[int]
    average: int | None = None
    shortest: int | None = None
    longest: int | None = None


# ---------- Prediction ----------

class PredictionRead(OvulinkBase):
    fertility_status: FertilityStatus
    has_prediction: bool
    predicted_ovulation_date: date | None = None
    predicted_period_date: date | None = None
    fertile_window_start: date | None = None
    fertile_window_end: date | None = None
    average_cycle_length: int | None = None
    std_cycle_length: float | None = None
    cycle_lengths: list[int] = Field(default_factory=list)
    cycles_used: int = 0
    last_period_start: date | None = None
    last_period_duration: int | None = None
    days_until_ovulation: int | None = None
    is_irregular: bool = False
    as_of: date | None = None
    message: str
    warnings: list[str] = Field(default_factory=list)
