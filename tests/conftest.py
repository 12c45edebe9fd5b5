from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from volunteer_goals.core.state_machine import append_note, status_after_progress
from volunteer_goals.core.types import (
    GoalFilter,
    GoalRecord,
    GoalStatus,
    HistoryFilter,
    HistoryRecord,
    ProgressSnapshot,
    VolunteerRecord,
    validate_progress,
)
from volunteer_goals.db.models import Base
from volunteer_goals.db.session import make_engine, make_session_factory

CREATED = datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)


class InMemoryGoalStore:
    def __init__(self, goals: list[GoalRecord] | None = None) -> None:
        self._lock = threading.Lock()
        self._goals: dict[str, GoalRecord] = {g.id: g for g in goals or []}

    def add(self, goal: GoalRecord) -> GoalRecord:
        with self._lock:
            self._goals[goal.id] = goal
        return goal

    def find_many(self, goal_filter: GoalFilter) -> list[GoalRecord]:
        with self._lock:
            return [replace(g) for g in self._goals.values() if goal_filter.matches(g)]

    def get(self, goal_id: str) -> GoalRecord | None:
        with self._lock:
            goal = self._goals.get(goal_id)
            return replace(goal) if goal is not None else None

    def update_status(self, goal_id, status, updated_at, *, expected_version=None) -> bool:
        with self._lock:
            goal = self._goals.get(goal_id)
            if goal is None:
                return False
            if expected_version is not None and goal.version != expected_version:
                return False
            if goal.status == GoalStatus.COMPLETED and status != GoalStatus.COMPLETED:
                return False
            self._goals[goal_id] = replace(goal, status=status, updated_at=updated_at, version=goal.version + 1)
            return True

    def update_progress(self, goal_id, progress, updated_at=None, *, note=None) -> GoalRecord | None:
        validate_progress(progress)
        updated_at = updated_at or datetime.now(timezone.utc)
        with self._lock:
            goal = self._goals.get(goal_id)
            if goal is None:
                return None
            updated = replace(
                goal,
                progress=progress,
                status=status_after_progress(goal.status, progress),
                notes=append_note(goal.notes, note, updated_at) if note else goal.notes,
                updated_at=updated_at,
                version=goal.version + 1,
            )
            self._goals[goal_id] = updated
            return replace(updated)


class InMemoryProgressHistoryStore:
    def __init__(self, rows: list[HistoryRecord] | None = None) -> None:
        self._lock = threading.Lock()
        self._rows: dict[tuple[str, date], HistoryRecord] = {(r.goal_id, r.week_start): r for r in rows or []}

    def insert_if_absent(self, goal_id: str, week_start: date, snapshot: ProgressSnapshot) -> bool:
        key = (goal_id, week_start)
        with self._lock:
            if key in self._rows:
                return False
            self._rows[key] = HistoryRecord(
                id=str(uuid.uuid4()),
                goal_id=goal_id,
                volunteer_id=snapshot.volunteer_id,
                title=snapshot.title,
                progress=snapshot.progress,
                status=snapshot.status,
                week_start=week_start,
                week_end=snapshot.week_end,
                created_at=datetime.now(timezone.utc),
                notes=snapshot.notes,
            )
            return True

    def find_many(self, history_filter: HistoryFilter) -> list[HistoryRecord]:
        with self._lock:
            rows = [r for r in self._rows.values() if history_filter.matches(r)]
        return sorted(rows, key=lambda r: (r.week_start, r.goal_id))


class InMemoryVolunteerStore:
    def __init__(self, volunteers: list[VolunteerRecord] | None = None) -> None:
        self._volunteers: dict[str, VolunteerRecord] = {v.id: v for v in volunteers or []}

    def find_many(self) -> list[VolunteerRecord]:
        return [replace(v) for v in self._volunteers.values()]

    def update_stats(self, volunteer_id: str, *, goals_count: int, completion_rate: int) -> None:
        volunteer = self._volunteers.get(volunteer_id)
        if volunteer is not None:
            self._volunteers[volunteer_id] = replace(
                volunteer, goals_count=goals_count, completion_rate=completion_rate
            )


class InMemoryActivityLog:
    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    def record(self, *, actor, action, resource, resource_id, details=None) -> None:
        self.entries.append(
            {
                "actor": actor,
                "action": action,
                "resource": resource,
                "resource_id": resource_id,
                "details": details or {},
            }
        )


def make_goal(**overrides) -> GoalRecord:
    goal = GoalRecord(
        id=str(uuid.uuid4()),
        title="Sort donations",
        volunteer_id="v1",
        status=GoalStatus.PENDING,
        progress=0,
        due_date=date(2024, 1, 31),
        created_at=CREATED,
        updated_at=CREATED,
    )
    return replace(goal, **overrides)


def make_volunteer(volunteer_id: str = "v1", **overrides) -> VolunteerRecord:
    volunteer = VolunteerRecord(id=volunteer_id, first_name="Ann", last_name=f"Lee {volunteer_id}")
    return replace(volunteer, **overrides)


@pytest.fixture()
def goal_store() -> InMemoryGoalStore:
    return InMemoryGoalStore()


@pytest.fixture()
def history_store() -> InMemoryProgressHistoryStore:
    return InMemoryProgressHistoryStore()


@pytest.fixture()
def volunteer_store() -> InMemoryVolunteerStore:
    return InMemoryVolunteerStore([make_volunteer("v1"), make_volunteer("v2")])


@pytest.fixture()
def activity_log() -> InMemoryActivityLog:
    return InMemoryActivityLog()


@pytest.fixture()
def session_factory(tmp_path: Path):
    engine = make_engine(f"sqlite+pysqlite:///{(tmp_path / 'goals.db').as_posix()}")
    Base.metadata.create_all(engine)
    try:
        yield make_session_factory(engine)
    finally:
        engine.dispose()
