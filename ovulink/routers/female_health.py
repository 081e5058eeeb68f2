"""Menstrual cycle endpoints: cycle CRUD, daily logs, summary and ovulation prediction.

Every write re-validates the user's whole cycle history against the server
date before it is persisted, so the store never holds a history the
estimator would reject.  ``as_of`` only moves the reference date of reads.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import uuid
from datetime import date
from typing import Any, Sequence

from fastapi import APIRouter, HTTPException, Query

from ovulink.dependencies import AsOf, CurrentUser, CycleStore, FertilitySettings
from ovulink.errors import RecordNotFoundError
from ovulink.fertility.base import CycleRecord
from ovulink.fertility.ovulation import OvulationEstimator, validate_cycles
from ovulink.models.female_health import (
    CycleCreate,
    CycleRead,
    CycleSummaryRead,
    CycleUpdate,
    DailyObservationCreate,
    ObservationRead,
    PredictionRead,
)

router = APIRouter(prefix="/female-health", tags=["female health"])
logger = logging.getLogger("ovulink.routers.female_health")


def _replace(cycles: Sequence[CycleRecord], updated: CycleRecord) -> list[CycleRecord]:
    return [updated if c.id == updated.id else c for c in cycles]


# ---------- Cycles ----------

@router.get("/cycles", response_model=list[CycleRead])
async def list_cycles(
    user: CurrentUser,
    store: CycleStore,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=12, ge=1, le=120),
    offset: int = Query(default=0, ge=0),
) -> Any:
    """Cycles newest first, optionally filtered by start date range."""
    cycles = await store.list_cycles(user.user_id)
    if start_date:
        cycles = [c for c in cycles if c.start_date >= start_date]
    if end_date:
        cycles = [c for c in cycles if c.start_date <= end_date]
    cycles.reverse()
    return [CycleRead.model_validate(c) for c in cycles[offset:offset + limit]]


@router.post("/cycles", response_model=CycleRead, status_code=201)
async def create_cycle(
    user: CurrentUser, store: CycleStore, body: CycleCreate
) -> Any:
    record = body.to_record()
    existing = await store.list_cycles(user.user_id)
    validate_cycles([*existing, record], date.today())
    created = await store.create_cycle(user.user_id, record)
    logger.info("User %s logged a cycle starting %s", user.user_id, created.start_date)
    return CycleRead.model_validate(created)


@router.get("/cycles/summary", response_model=CycleSummaryRead)
async def cycle_summary(
    user: CurrentUser, store: CycleStore, config: FertilitySettings
) -> Any:
    """Average, shortest and longest cycle length over all completed cycles."""
    cycles = await store.list_cycles(user.user_id)
    return CycleSummaryRead.model_validate(OvulationEstimator(config).summarize(cycles))


@router.get("/cycles/{cycle_id}", response_model=CycleRead)
async def get_cycle(cycle_id: uuid.UUID, user: CurrentUser, store: CycleStore) -> Any:
    return CycleRead.model_validate(await store.get_cycle(user.user_id, cycle_id))


@router.patch("/cycles/{cycle_id}", response_model=CycleRead)
async def update_cycle(
    cycle_id: uuid.UUID,
    user: CurrentUser,
    store: CycleStore,
    body: CycleUpdate,
) -> Any:
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "start_date" in updates and updates["start_date"] is None:
        raise HTTPException(status_code=400, detail="start_date cannot be cleared")

    existing = await store.list_cycles(user.user_id)
    current = next((c for c in existing if c.id == cycle_id), None)
    if current is None:
        raise RecordNotFoundError("Cycle not found")

    candidate = copy.deepcopy(current)
    for key, value in updates.items():
        setattr(candidate, key, value)
    validate_cycles(_replace(existing, candidate), date.today())

    return CycleRead.model_validate(await store.update_cycle(user.user_id, cycle_id, updates))


@router.delete("/cycles/{cycle_id}", status_code=204)
async def delete_cycle(cycle_id: uuid.UUID, user: CurrentUser, store: CycleStore) -> None:
    await store.delete_cycle(user.user_id, cycle_id)


@router.post("/cycles/{cycle_id}/days", response_model=CycleRead, status_code=201)
async def log_day(
    cycle_id: uuid.UUID,
    user: CurrentUser,
    store: CycleStore,
    body: DailyObservationCreate,
) -> Any:
    """Record (or replace) the observations for one day of a cycle."""
    cycle = await store.get_cycle(user.user_id, cycle_id)
    day = body.to_record()
    candidate = copy.deepcopy(cycle)
    candidate.days = [d for d in candidate.days if d.date != day.date] + [day]
    validate_cycles([candidate], date.today())
    return CycleRead.model_validate(await store.add_day(user.user_id, cycle_id, day))


@router.delete("/cycles/{cycle_id}/days/{day_date}", status_code=204)
async def delete_day(
    cycle_id: uuid.UUID, day_date: date, user: CurrentUser, store: CycleStore
) -> None:
    await store.remove_day(user.user_id, cycle_id, day_date)


@router.get("/observations", response_model=list[ObservationRead])
async def list_observations(
    user: CurrentUser,
    store: CycleStore,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> Any:
    """Daily observations across all cycles, oldest first, for the temperature and mucus charts."""
    pairs = await store.list_observations(user.user_id, start_date, end_date)
    return [
        ObservationRead.model_validate({**dataclasses.asdict(day), "cycle_id": cycle_id})
        for cycle_id, day in pairs
    ]


# ---------- Prediction ----------

@router.get("/predict-ovulation", response_model=PredictionRead)
async def predict_ovulation(
    user: CurrentUser, store: CycleStore, config: FertilitySettings, today: AsOf
) -> Any:
    """Predict next ovulation and period from the user's cycle history.

    With fewer than two completed cycles the response has
    ``fertility_status="unknown"`` and no dates.
    """
    cycles = await store.list_cycles(user.user_id)
    return PredictionRead.model_validate(OvulationEstimator(config).estimate(cycles, today))
