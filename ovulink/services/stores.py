"""Persistence collaborators for cycle history and sperm tests.

The routers depend only on the ``CycleHistoryStore`` / ``SpermTestStore``
protocols.  Two implementations ship:

* ``PostgresCycleStore`` / ``PostgresSpermTestStore`` — asyncpg via
  ``ovulink.services.database``.
* ``InMemoryCycleStore`` / ``InMemorySpermTestStore`` — process-local dicts
  for tests and local development (``OVULINK_STORAGE_BACKEND=memory``).

Both return the fertility engine's own dataclasses, never raw rows.
"""

from __future__ import annotations

import copy
import logging
import uuid
from datetime import date
from enum import Enum
from typing import Any, Protocol

import asyncpg

from ovulink.errors import ConflictError, RecordNotFoundError
from ovulink.fertility.base import (
    CervicalMucus,
    CycleRecord,
    DailyObservation,
    FlowIntensity,
    OvulationTestResult,
    SpermTest,
)
from ovulink.services import database

logger = logging.getLogger("ovulink.stores")

CYCLE_UPDATABLE_FIELDS = ("start_date", "end_date", "flow", "notes")
SPERM_UPDATABLE_FIELDS = ("date", "count", "motility", "morphology", "volume", "notes")


class CycleHistoryStore(Protocol):
    async def list_cycles(self, user_id: str) -> list[CycleRecord]:
        """All cycles for a user, ascending by start date, days included."""
        ...

    async def get_cycle(self, user_id: str, cycle_id: uuid.UUID) -> CycleRecord: ...

    async def create_cycle(self, user_id: str, cycle: CycleRecord) -> CycleRecord: ...

    async def update_cycle(
        self, user_id: str, cycle_id: uuid.UUID, changes: dict[str, Any]
    ) -> CycleRecord: ...

    async def delete_cycle(self, user_id: str, cycle_id: uuid.UUID) -> None: ...

    async def add_day(
        self, user_id: str, cycle_id: uuid.UUID, day: DailyObservation
    ) -> CycleRecord:
        """Insert or replace the observation for ``day.date``."""
        ...

    async def remove_day(self, user_id: str, cycle_id: uuid.UUID, day_date: date) -> None: ...

    async def list_observations(
        self, user_id: str, start_date: date | None = None, end_date: date | None = None
    ) -> list[tuple[uuid.UUID, DailyObservation]]:
        """(cycle_id, observation) pairs across all cycles, ascending by date."""
        ...


class SpermTestStore(Protocol):
    async def list_tests(self, user_id: str) -> list[SpermTest]:
        """All tests for a user, newest first."""
        ...

    async def get_test(self, user_id: str, test_id: uuid.UUID) -> SpermTest: ...

    async def create_test(self, user_id: str, test: SpermTest) -> SpermTest: ...

    async def update_test(
        self, user_id: str, test_id: uuid.UUID, changes: dict[str, Any]
    ) -> SpermTest: ...

    async def delete_test(self, user_id: str, test_id: uuid.UUID) -> None: ...


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _check_fields(changes: dict[str, Any], allowed: tuple[str, ...]) -> None:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryCycleStore:
    """Dict-backed CycleHistoryStore.  Returns copies, never live records."""

    def __init__(self) -> None:
        self._cycles: dict[str, dict[uuid.UUID, CycleRecord]] = {}

    def _owned(self, user_id: str, cycle_id: uuid.UUID) -> CycleRecord:
        cycle = self._cycles.get(user_id, {}).get(cycle_id)
        if cycle is None:
            raise RecordNotFoundError("Cycle not found")
        return cycle

    def _ensure_unique_start(self, user_id: str, start: date, exclude: uuid.UUID | None = None) -> None:
        for other in self._cycles.get(user_id, {}).values():
            if other.id != exclude and other.start_date == start:
                raise ConflictError(f"A cycle starting {start} already exists")

    async def list_cycles(self, user_id: str) -> list[CycleRecord]:
        cycles = sorted(self._cycles.get(user_id, {}).values(), key=lambda c: c.start_date)
        return copy.deepcopy(cycles)

    async def get_cycle(self, user_id: str, cycle_id: uuid.UUID) -> CycleRecord:
        return copy.deepcopy(self._owned(user_id, cycle_id))

    async def create_cycle(self, user_id: str, cycle: CycleRecord) -> CycleRecord:
        self._ensure_unique_start(user_id, cycle.start_date)
        stored = copy.deepcopy(cycle)
        stored.id = uuid.uuid4()
        stored.user_id = user_id
        stored.days = sorted(stored.days, key=lambda d: d.date)
        self._cycles.setdefault(user_id, {})[stored.id] = stored
        return copy.deepcopy(stored)

    async def update_cycle(
        self, user_id: str, cycle_id: uuid.UUID, changes: dict[str, Any]
    ) -> CycleRecord:
        _check_fields(changes, CYCLE_UPDATABLE_FIELDS)
        cycle = self._owned(user_id, cycle_id)
        if "start_date" in changes:
            self._ensure_unique_start(user_id, changes["start_date"], exclude=cycle_id)
        for key, value in changes.items():
            setattr(cycle, key, value)
        return copy.deepcopy(cycle)

    async def delete_cycle(self, user_id: str, cycle_id: uuid.UUID) -> None:
        self._owned(user_id, cycle_id)
        del self._cycles[user_id][cycle_id]

    async def add_day(
        self, user_id: str, cycle_id: uuid.UUID, day: DailyObservation
    ) -> CycleRecord:
        cycle = self._owned(user_id, cycle_id)
        cycle.days = sorted(
            [d for d in cycle.days if d.date != day.date] + [copy.deepcopy(day)],
            key=lambda d: d.date,
        )
        return copy.deepcopy(cycle)

    async def remove_day(self, user_id: str, cycle_id: uuid.UUID, day_date: date) -> None:
        cycle = self._owned(user_id, cycle_id)
        remaining = [d for d in cycle.days if d.date != day_date]
        if len(remaining) == len(cycle.days):
            raise RecordNotFoundError("Observation not found")
        cycle.days = remaining

    async def list_observations(
        self, user_id: str, start_date: date | None = None, end_date: date | None = None
    ) -> list[tuple[uuid.UUID, DailyObservation]]:
        pairs = [
            (cycle.id, copy.deepcopy(day))
            for cycle in self._cycles.get(user_id, {}).values()
            for day in cycle.days
            if (start_date is None or day.date >= start_date)
            and (end_date is None or day.date <= end_date)
        ]
        return sorted(pairs, key=lambda pair: pair[1].date)


class InMemorySpermTestStore:
    """Dict-backed SpermTestStore."""

    def __init__(self) -> None:
        self._tests: dict[str, dict[uuid.UUID, SpermTest]] = {}

    def _owned(self, user_id: str, test_id: uuid.UUID) -> SpermTest:
        test = self._tests.get(user_id, {}).get(test_id)
        if test is None:
            raise RecordNotFoundError("Sperm test not found")
        return test

    def _ensure_unique_date(self, user_id: str, test_date: date, exclude: uuid.UUID | None = None) -> None:
        for other in self._tests.get(user_id, {}).values():
            if other.id != exclude and other.date == test_date:
                raise ConflictError(f"A sperm test for {test_date} already exists")

    async def list_tests(self, user_id: str) -> list[SpermTest]:
        tests = sorted(
            self._tests.get(user_id, {}).values(),
            key=lambda t: t.date or date.min,
            reverse=True,
        )
        return copy.deepcopy(tests)

    async def get_test(self, user_id: str, test_id: uuid.UUID) -> SpermTest:
        return copy.deepcopy(self._owned(user_id, test_id))

    async def create_test(self, user_id: str, test: SpermTest) -> SpermTest:
        if test.date is not None:
            self._ensure_unique_date(user_id, test.date)
        stored = copy.deepcopy(test)
        stored.id = uuid.uuid4()
        stored.user_id = user_id
        self._tests.setdefault(user_id, {})[stored.id] = stored
        return copy.deepcopy(stored)

    async def update_test(
        self, user_id: str, test_id: uuid.UUID, changes: dict[str, Any]
    ) -> SpermTest:
        _check_fields(changes, SPERM_UPDATABLE_FIELDS)
        test = self._owned(user_id, test_id)
        if changes.get("date") is not None:
            self._ensure_unique_date(user_id, changes["date"], exclude=test_id)
        for key, value in changes.items():
            setattr(test, key, value)
        return copy.deepcopy(test)

    async def delete_test(self, user_id: str, test_id: uuid.UUID) -> None:
        self._owned(user_id, test_id)
        del self._tests[user_id][test_id]


# ---------------------------------------------------------------------------
# Postgres
# ---------------------------------------------------------------------------


def _day_from_row(row: asyncpg.Record) -> DailyObservation:
    return DailyObservation(
        date=row["date"],
        temperature_f=float(row["temperature_f"]) if row["temperature_f"] is not None else None,
        cervical_mucus=CervicalMucus(row["cervical_mucus"]) if row["cervical_mucus"] else None,
        ovulation_test=OvulationTestResult(row["ovulation_test"]) if row["ovulation_test"] else None,
        flow=FlowIntensity(row["flow"]) if row["flow"] else None,
        notes=row["notes"],
    )


def _cycle_from_row(row: asyncpg.Record, days: list[DailyObservation] | None = None) -> CycleRecord:
    return CycleRecord(
        id=row["id"],
        user_id=row["user_id"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        flow=FlowIntensity(row["flow"]) if row["flow"] else None,
        notes=row["notes"],
        days=days or [],
    )


def _test_from_row(row: asyncpg.Record) -> SpermTest:
    return SpermTest(
        id=row["id"],
        user_id=row["user_id"],
        date=row["date"],
        count=row["count"],
        motility=row["motility"],
        morphology=row["morphology"],
        volume=row["volume"],
        notes=row["notes"],
    )


def _set_clause(changes: dict[str, Any], start: int) -> tuple[str, list[Any]]:
    set_clauses = []
    params: list[Any] = []
    for i, (key, value) in enumerate(changes.items(), start=start):
        set_clauses.append(f"{key} = ${i}")
        params.append(_db_value(value))
    set_clauses.append("updated_at = NOW()")
    return ", ".join(set_clauses), params


class PostgresCycleStore:
    """CycleHistoryStore backed by the ``menstrual_cycles`` and ``cycle_days`` tables."""

    async def list_cycles(self, user_id: str) -> list[CycleRecord]:
        async with database.get_connection() as conn:
            rows = await conn.fetch(
                "SELECT * FROM menstrual_cycles WHERE user_id = $1 ORDER BY start_date",
                user_id,
            )
            day_rows = await conn.fetch(
                "SELECT * FROM cycle_days WHERE user_id = $1 ORDER BY date",
                user_id,
            )
        days_by_cycle: dict[uuid.UUID, list[DailyObservation]] = {}
        for day_row in day_rows:
            days_by_cycle.setdefault(day_row["cycle_id"], []).append(_day_from_row(day_row))
        return [_cycle_from_row(r, days_by_cycle.get(r["id"])) for r in rows]

    async def get_cycle(self, user_id: str, cycle_id: uuid.UUID) -> CycleRecord:
        async with database.get_connection() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM menstrual_cycles WHERE id = $1 AND user_id = $2",
                cycle_id, user_id,
            )
            if not row:
                raise RecordNotFoundError("Cycle not found")
            day_rows = await conn.fetch(
                "SELECT * FROM cycle_days WHERE cycle_id = $1 ORDER BY date",
                cycle_id,
            )
        return _cycle_from_row(row, [_day_from_row(d) for d in day_rows])

    async def create_cycle(self, user_id: str, cycle: CycleRecord) -> CycleRecord:
        try:
            async with database.get_connection() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO menstrual_cycles (user_id, start_date, end_date, flow, notes)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING *
                    """,
                    user_id, cycle.start_date, cycle.end_date,
                    _db_value(cycle.flow), cycle.notes,
                )
                for day in cycle.days:
                    await self._upsert_day(conn, user_id, row["id"], day)
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError(f"A cycle starting {cycle.start_date} already exists") from exc
        logger.info("Created cycle %s for user %s", row["id"], user_id)
        return await self.get_cycle(user_id, row["id"])

    async def update_cycle(
        self, user_id: str, cycle_id: uuid.UUID, changes: dict[str, Any]
    ) -> CycleRecord:
        _check_fields(changes, CYCLE_UPDATABLE_FIELDS)
        if changes:
            set_sql, params = _set_clause(changes, start=3)
            try:
                status = await database.execute(
                    f"UPDATE menstrual_cycles SET {set_sql} WHERE id = $1 AND user_id = $2",
                    cycle_id, user_id, *params,
                )
            except asyncpg.UniqueViolationError as exc:
                raise ConflictError("Another cycle already starts on that date") from exc
            if status == "UPDATE 0":
                raise RecordNotFoundError("Cycle not found")
        return await self.get_cycle(user_id, cycle_id)

    async def delete_cycle(self, user_id: str, cycle_id: uuid.UUID) -> None:
        status = await database.execute(
            "DELETE FROM menstrual_cycles WHERE id = $1 AND user_id = $2",
            cycle_id, user_id,
        )
        if status == "DELETE 0":
            raise RecordNotFoundError("Cycle not found")

    async def add_day(
        self, user_id: str, cycle_id: uuid.UUID, day: DailyObservation
    ) -> CycleRecord:
        async with database.get_connection() as conn:
            owned = await conn.fetchval(
                "SELECT 1 FROM menstrual_cycles WHERE id = $1 AND user_id = $2",
                cycle_id, user_id,
            )
            if not owned:
                raise RecordNotFoundError("Cycle not found")
            await self._upsert_day(conn, user_id, cycle_id, day)
        return await self.get_cycle(user_id, cycle_id)

    async def remove_day(self, user_id: str, cycle_id: uuid.UUID, day_date: date) -> None:
        status = await database.execute(
            "DELETE FROM cycle_days WHERE cycle_id = $1 AND user_id = $2 AND date = $3",
            cycle_id, user_id, day_date,
        )
        if status == "DELETE 0":
            raise RecordNotFoundError("Observation not found")

    async def list_observations(
        self, user_id: str, start_date: date | None = None, end_date: date | None = None
    ) -> list[tuple[uuid.UUID, DailyObservation]]:
        conditions = ["user_id = $1"]
        params: list[Any] = [user_id]
        if start_date is not None:
            params.append(start_date)
            conditions.append(f"date >= ${len(params)}")
        if end_date is not None:
            params.append(end_date)
            conditions.append(f"date <= ${len(params)}")
        where = " AND ".join(conditions)
        rows = await database.fetch(
            f"SELECT * FROM cycle_days WHERE {where} ORDER BY date",
            *params,
        )
        return [(row["cycle_id"], _day_from_row(row)) for row in rows]

    @staticmethod
    async def _upsert_day(
        conn: asyncpg.Connection, user_id: str, cycle_id: uuid.UUID, day: DailyObservation
    ) -> None:
        await conn.execute(
            """
            INSERT INTO cycle_days (
                cycle_id, user_id, date, temperature_f, cervical_mucus, ovulation_test, flow, notes
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (cycle_id, date) DO UPDATE SET
                temperature_f = EXCLUDED.temperature_f,
                cervical_mucus = EXCLUDED.cervical_mucus,
                ovulation_test = EXCLUDED.ovulation_test,
                flow = EXCLUDED.flow,
                notes = EXCLUDED.notes
            """,
            cycle_id, user_id, day.date, day.temperature_f,
            _db_value(day.cervical_mucus), _db_value(day.ovulation_test),
            _db_value(day.flow), day.notes,
        )


class PostgresSpermTestStore:
    """SpermTestStore backed by the ``sperm_tests`` table."""

    async def list_tests(self, user_id: str) -> list[SpermTest]:
        rows = await database.fetch(
            "SELECT * FROM sperm_tests WHERE user_id = $1 ORDER BY date DESC",
            user_id,
        )
        return [_test_from_row(r) for r in rows]

    async def get_test(self, user_id: str, test_id: uuid.UUID) -> SpermTest:
        row = await database.fetchrow(
            "SELECT * FROM sperm_tests WHERE id = $1 AND user_id = $2",
            test_id, user_id,
        )
        if not row:
            raise RecordNotFoundError("Sperm test not found")
        return _test_from_row(row)

    async def create_test(self, user_id: str, test: SpermTest) -> SpermTest:
        try:
            row = await database.fetchrow(
                """
                INSERT INTO sperm_tests (user_id, date, count, motility, morphology, volume, notes)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                user_id, test.date, test.count, test.motility,
                test.morphology, test.volume, test.notes,
            )
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError(f"A sperm test for {test.date} already exists") from exc
        return _test_from_row(row)  # type: ignore[arg-type]

    async def update_test(
        self, user_id: str, test_id: uuid.UUID, changes: dict[str, Any]
    ) -> SpermTest:
        _check_fields(changes, SPERM_UPDATABLE_FIELDS)
        if not changes:
            return await self.get_test(user_id, test_id)
        set_sql, params = _set_clause(changes, start=3)
        try:
            row = await database.fetchrow(
                f"UPDATE sperm_tests SET {set_sql} WHERE id = $1 AND user_id = $2 RETURNING *",
                test_id, user_id, *params,
            )
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError("Another sperm test already exists for that date") from exc
        if not row:
            raise RecordNotFoundError("Sperm test not found")
        return _test_from_row(row)

    async def delete_test(self, user_id: str, test_id: uuid.UUID) -> None:
        status = await database.execute(
            "DELETE FROM sperm_tests WHERE id = $1 AND user_id = $2",
            test_id, user_id,
        )
        if status == "DELETE 0":
            raise RecordNotFoundError("Sperm test not found")
