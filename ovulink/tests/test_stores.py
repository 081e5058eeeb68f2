"""Tests for the in-memory stores and the Postgres row mapping."""

from __future__ import annotations

import uuid
from datetime import date
from unittest.mock import AsyncMock, patch

import asyncpg
import pytest

from ovulink.errors import ConflictError, RecordNotFoundError
from ovulink.fertility.base import CervicalMucus, CycleRecord, DailyObservation, FlowIntensity, SpermTest
from ovulink.services.stores import (
    InMemoryCycleStore,
    InMemorySpermTestStore,
    PostgresCycleStore,
    PostgresSpermTestStore,
    _cycle_from_row,
    _day_from_row,
    _set_clause,
)

USER = "firebase-uid-alice"


# ---------------------------------------------------------------------------
# In-memory cycle store
# ---------------------------------------------------------------------------


class TestInMemoryCycleStore:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_owner(self) -> None:
        store = InMemoryCycleStore()
        created = await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))
        assert isinstance(created.id, uuid.UUID)
        assert created.user_id == USER

    @pytest.mark.asyncio
    async def test_list_is_ascending_and_returns_copies(self) -> None:
        store = InMemoryCycleStore()
        await store.create_cycle(USER, CycleRecord(start_date=date(2024, 2, 1)))
        await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))

        cycles = await store.list_cycles(USER)
        assert [c.start_date for c in cycles] == [date(2024, 1, 1), date(2024, 2, 1)]

        cycles[0].notes = "mutated"
        assert (await store.list_cycles(USER))[0].notes is None

    @pytest.mark.asyncio
    async def test_duplicate_start_conflicts(self) -> None:
        store = InMemoryCycleStore()
        await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))
        with pytest.raises(ConflictError):
            await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))

    @pytest.mark.asyncio
    async def test_other_users_cycles_are_not_found(self) -> None:
        store = InMemoryCycleStore()
        created = await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))
        with pytest.raises(RecordNotFoundError):
            await store.get_cycle("someone-else", created.id)
        with pytest.raises(RecordNotFoundError):
            await store.delete_cycle("someone-else", created.id)

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self) -> None:
        store = InMemoryCycleStore()
        created = await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))
        with pytest.raises(ValueError, match="user_id"):
            await store.update_cycle(USER, created.id, {"user_id": "mallory"})

    @pytest.mark.asyncio
    async def test_add_day_upserts_by_date(self) -> None:
        store = InMemoryCycleStore()
        created = await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))
        await store.add_day(USER, created.id, DailyObservation(date=date(2024, 1, 3), temperature_f=97.5))
        await store.add_day(USER, created.id, DailyObservation(date=date(2024, 1, 2)))
        cycle = await store.add_day(
            USER, created.id, DailyObservation(date=date(2024, 1, 3), temperature_f=97.9)
        )
        assert [d.date for d in cycle.days] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert cycle.days[1].temperature_f == 97.9

    @pytest.mark.asyncio
    async def test_remove_day(self) -> None:
        store = InMemoryCycleStore()
        created = await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 1)))
        await store.add_day(USER, created.id, DailyObservation(date=date(2024, 1, 2)))
        await store.add_day(USER, created.id, DailyObservation(date=date(2024, 1, 3)))

        await store.remove_day(USER, created.id, date(2024, 1, 2))
        cycle = await store.get_cycle(USER, created.id)
        assert [d.date for d in cycle.days] == [date(2024, 1, 3)]

        with pytest.raises(RecordNotFoundError, match="Observation not found"):
            await store.remove_day(USER, created.id, date(2024, 1, 2))
        with pytest.raises(RecordNotFoundError, match="Cycle not found"):
            await store.remove_day("someone-else", created.id, date(2024, 1, 3))

    @pytest.mark.asyncio
    async def test_list_observations_by_date_range(self) -> None:
        store = InMemoryCycleStore()
        first = await store.create_cycle(
            USER, CycleRecord(start_date=date(2024, 1, 1), end_date=date(2024, 1, 5))
        )
        second = await store.create_cycle(USER, CycleRecord(start_date=date(2024, 1, 29)))
        await store.add_day(USER, second.id, DailyObservation(date=date(2024, 2, 1), temperature_f=97.4))
        await store.add_day(USER, first.id, DailyObservation(date=date(2024, 1, 4), temperature_f=97.1))
        await store.add_day(USER, second.id, DailyObservation(date=date(2024, 2, 10), temperature_f=98.0))

        pairs = await store.list_observations(USER)
        assert [(cycle_id, day.date) for cycle_id, day in pairs] == [
            (first.id, date(2024, 1, 4)),
            (second.id, date(2024, 2, 1)),
            (second.id, date(2024, 2, 10)),
        ]

        pairs = await store.list_observations(USER, date(2024, 1, 5), date(2024, 2, 1))
        assert [day.temperature_f for _, day in pairs] == [97.4]
        assert await store.list_observations("someone-else") == []


# ---------------------------------------------------------------------------
# In-memory sperm test store
# ---------------------------------------------------------------------------


class TestInMemorySpermTestStore:
    @pytest.mark.asyncio
    async def test_list_is_newest_first(self) -> None:
        store = InMemorySpermTestStore()
        await store.create_test(USER, SpermTest(count=20, date=date(2024, 1, 1)))
        await store.create_test(USER, SpermTest(count=30, date=date(2024, 3, 1)))
        assert [t.count for t in await store.list_tests(USER)] == [30, 20]

    @pytest.mark.asyncio
    async def test_moving_onto_taken_date_conflicts(self) -> None:
        store = InMemorySpermTestStore()
        await store.create_test(USER, SpermTest(count=20, date=date(2024, 1, 1)))
        second = await store.create_test(USER, SpermTest(count=30, date=date(2024, 2, 1)))
        with pytest.raises(ConflictError):
            await store.update_test(USER, second.id, {"date": date(2024, 1, 1)})

    @pytest.mark.asyncio
    async def test_update_and_delete(self) -> None:
        store = InMemorySpermTestStore()
        created = await store.create_test(USER, SpermTest(count=20, date=date(2024, 1, 1)))
        updated = await store.update_test(USER, created.id, {"volume": 2.5})
        assert updated.volume == 2.5
        assert updated.count == 20
        await store.delete_test(USER, created.id)
        with pytest.raises(RecordNotFoundError):
            await store.get_test(USER, created.id)


# ---------------------------------------------------------------------------
# Postgres mapping
# ---------------------------------------------------------------------------


class TestPostgresMapping:
    def test_day_from_row_parses_enums(self) -> None:
        day = _day_from_row({
            "date": date(2024, 1, 3),
            "temperature_f": 97.6,
            "cervical_mucus": "egg_white",
            "ovulation_test": None,
            "flow": "light",
            "notes": None,
        })
        assert day.cervical_mucus == CervicalMucus.egg_white
        assert day.ovulation_test is None
        assert day.flow == FlowIntensity.light

    def test_cycle_from_row(self) -> None:
        cycle_id = uuid.uuid4()
        cycle = _cycle_from_row({
            "id": cycle_id,
            "user_id": USER,
            "start_date": date(2024, 1, 1),
            "end_date": None,
            "flow": None,
            "notes": "first",
        })
        assert cycle.id == cycle_id
        assert not cycle.is_complete
        assert cycle.days == []

    def test_set_clause_serializes_enums(self) -> None:
        sql, params = _set_clause({"flow": FlowIntensity.heavy, "notes": "x"}, start=3)
        assert sql == "flow = $3, notes = $4, updated_at = NOW()"
        assert params == ["heavy", "x"]

    @pytest.mark.asyncio
    async def test_delete_missing_cycle_raises_not_found(self) -> None:
        with patch("ovulink.services.stores.database.execute", AsyncMock(return_value="DELETE 0")):
            with pytest.raises(RecordNotFoundError):
                await PostgresCycleStore().delete_cycle(USER, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_remove_missing_day_raises_not_found(self) -> None:
        with patch("ovulink.services.stores.database.execute", AsyncMock(return_value="DELETE 0")):
            with pytest.raises(RecordNotFoundError, match="Observation not found"):
                await PostgresCycleStore().remove_day(USER, uuid.uuid4(), date(2024, 1, 2))

    @pytest.mark.asyncio
    async def test_list_observations_filters_by_date(self) -> None:
        cycle_id = uuid.uuid4()
        row = {
            "cycle_id": cycle_id,
            "date": date(2024, 1, 3),
            "temperature_f": 97.6,
            "cervical_mucus": "creamy",
            "ovulation_test": None,
            "flow": None,
            "notes": None,
        }
        fetch = AsyncMock(return_value=[row])
        with patch("ovulink.services.stores.database.fetch", fetch):
            pairs = await PostgresCycleStore().list_observations(USER, start_date=date(2024, 1, 1))

        query, *params = fetch.await_args.args
        assert "user_id = $1 AND date >= $2" in query
        assert "date <=" not in query
        assert params == [USER, date(2024, 1, 1)]
        assert pairs[0][0] == cycle_id
        assert pairs[0][1].cervical_mucus == CervicalMucus.creamy

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_conflict(self) -> None:
        failing = AsyncMock(side_effect=asyncpg.UniqueViolationError("duplicate key"))
        with patch("ovulink.services.stores.database.fetchrow", failing):
            with pytest.raises(ConflictError):
                await PostgresSpermTestStore().create_test(
                    USER, SpermTest(count=20, date=date(2024, 1, 1))
                )

    @pytest.mark.asyncio
    async def test_update_missing_test_raises_not_found(self) -> None:
        with patch("ovulink.services.stores.database.fetchrow", AsyncMock(return_value=None)):
            with pytest.raises(RecordNotFoundError):
                await PostgresSpermTestStore().update_test(USER, uuid.uuid4(), {"count": 10})
