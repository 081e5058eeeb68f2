"""Sperm test endpoints: CRUD, score calculator, latest result and trends."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from ovulink.dependencies import AsOf, CurrentUser, FertilitySettings, SpermStore
from ovulink.fertility.base import SpermTest
from ovulink.fertility.sperm_score import SpermHealthScorer
from ovulink.fertility.trends import analyze_trends
from ovulink.models.male_health import (
    LatestSpermTestRead,
    SpermHealthScoreRead,
    SpermMeasurements,
    SpermTestCreate,
    SpermTestRead,
    SpermTestUpdate,
    SpermTrendsRead,
)

router = APIRouter(prefix="/male-health", tags=["male health"])
logger = logging.getLogger("ovulink.routers.male_health")


def _to_read(test: SpermTest, scorer: SpermHealthScorer) -> SpermTestRead:
    # Scores are derived on every read, never stored
    return SpermTestRead.model_validate({**dataclasses.asdict(test), "score": scorer.score(test)})


# ---------- Score calculator (public) ----------

@router.post("/calculate-score", response_model=SpermHealthScoreRead)
async def calculate_score(body: SpermMeasurements, config: FertilitySettings) -> Any:
    """Score measurements without saving them. No authentication required."""
    return SpermHealthScoreRead.model_validate(SpermHealthScorer(config).analyze(body.to_test()))


# ---------- Sperm tests ----------

@router.get("/sperm", response_model=list[SpermTestRead])
async def list_tests(
    user: CurrentUser,
    store: SpermStore,
    config: FertilitySettings,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> Any:
    """Tests newest first."""
    tests = await store.list_tests(user.user_id)
    scorer = SpermHealthScorer(config)
    return [_to_read(t, scorer) for t in tests[offset:offset + limit]]


@router.post("/sperm", response_model=SpermTestRead, status_code=201)
async def create_test(
    user: CurrentUser, store: SpermStore, config: FertilitySettings, body: SpermTestCreate
) -> Any:
    created = await store.create_test(user.user_id, body.to_test())
    logger.info("User %s logged a sperm test for %s", user.user_id, created.date)
    return _to_read(created, SpermHealthScorer(config))


@router.get("/latest", response_model=LatestSpermTestRead)
async def latest_test(user: CurrentUser, store: SpermStore, config: FertilitySettings) -> Any:
    """The most recent test with its full score breakdown."""
    tests = await store.list_tests(user.user_id)
    if not tests:
        return LatestSpermTestRead()
    scorer = SpermHealthScorer(config)
    latest = tests[0]
    return LatestSpermTestRead(
        test=_to_read(latest, scorer),
        score=SpermHealthScoreRead.model_validate(scorer.analyze(latest)),
    )


@router.get("/sperm/{test_id}", response_model=SpermTestRead)
async def get_test(
    test_id: uuid.UUID, user: CurrentUser, store: SpermStore, config: FertilitySettings
) -> Any:
    return _to_read(await store.get_test(user.user_id, test_id), SpermHealthScorer(config))


@router.patch("/sperm/{test_id}", response_model=SpermTestRead)
async def update_test(
    test_id: uuid.UUID,
    user: CurrentUser,
    store: SpermStore,
    config: FertilitySettings,
    body: SpermTestUpdate,
) -> Any:
    updates = body.changes()
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "date" in updates and updates["date"] is None:
        raise HTTPException(status_code=400, detail="date cannot be cleared")

    updated = await store.update_test(user.user_id, test_id, updates)
    return _to_read(updated, SpermHealthScorer(config))


@router.delete("/sperm/{test_id}", status_code=204)
async def delete_test(test_id: uuid.UUID, user: CurrentUser, store: SpermStore) -> None:
    await store.delete_test(user.user_id, test_id)


# ---------- Trends ----------

@router.get("/trends", response_model=SpermTrendsRead)
async def trends(
    user: CurrentUser,
    store: SpermStore,
    config: FertilitySettings,
    today: AsOf,
    months: int = Query(default=6, ge=1, le=60),
) -> Any:
    """First-vs-last trend of each metric and the overall score.

    Needs at least two tests inside the window; otherwise
    ``available`` is false.
    """
    tests = await store.list_tests(user.user_id)
    return SpermTrendsRead.model_validate(analyze_trends(tests, today, months, config))
