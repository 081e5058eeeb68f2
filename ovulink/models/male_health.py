"""Pydantic models for sperm tests, scores and trends."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import Field

from ovulink.fertility.base import SpermTest
from ovulink.models.base import OvulinkBase


# ---------- Measurements ----------

class SpermMeasurements(OvulinkBase):
    count: float | None = Field(default=None, ge=0, description="million/ml")
    motility: float | None = Field(default=None, ge=0, le=100, description="% motile")
    morphology: float | None = Field(default=None, ge=0, le=100, description="% normal forms")
    volume: float | None = Field(default=None, ge=0, description="ml")

    def to_test(self) -> SpermTest:
        return SpermTest(
            count=self.count,
            motility=self.motility,
            morphology=self.morphology,
            volume=self.volume,
        )


class SpermTestCreate(SpermMeasurements):
    date: date
    notes: str | None = Field(default=None, max_length=1000)

    def to_test(self) -> SpermTest:
        test = super().to_test()
        test.date = self.date
        test.notes = self.notes
        return test


class SpermTestUpdate(OvulinkBase):
    test_date: date | None = Field(default=None, alias="date")
    count: float | None = Field(default=None, ge=0)
    motility: float | None = Field(default=None, ge=0, le=100)
    morphology: float | None = Field(default=None, ge=0, le=100)
    volume: float | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=1000)

    def changes(self) -> dict:
        updates = self.model_dump(exclude_unset=True)
        if "test_date" in updates:
            updates["date"] = updates.pop("test_date")
        return updates


# ---------- Scores ----------

class ReferenceRangeRead(OvulinkBase):
    min: float
    optimal: float
    unit: str = ""


class MetricScoreRead(OvulinkBase):
    metric: str
    value: float | None = None
    score: int
    available: bool
    below_reference: bool
    reference: ReferenceRangeRead


class SpermHealthScoreRead(OvulinkBase):
    score: int | None = None
    category: str
    analysis: str
    meets_reference_ranges: bool
    metrics: list[MetricScoreRead] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class SpermTestRead(OvulinkBase):
    id: uuid.UUID
    user_id: str
    date: date
    count: float | None = None
    motility: float | None = None
    morphology: float | None = None
    volume: float | None = None
    notes: str | None = None
    score: int | None = None


class LatestSpermTestRead(OvulinkBase):
    test: SpermTestRead | None = None
    score: SpermHealthScoreRead | None = None


# ---------- Trends ----------

class TrendRead(OvulinkBase):
    direction: str
    percentage: int
    message: str


class ScoredTestRead(OvulinkBase):
    date: date
    score: int | None = None


class SpermTrendsRead(OvulinkBase):
    available: bool
    months: int
    start_date: date
    message: str
    metrics: dict[str, TrendRead] = Field(default_factory=dict)
    overall: TrendRead | None = None
    records: list[ScoredTestRead] = Field(default_factory=list)
