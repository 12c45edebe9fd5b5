from __future__ import annotations

from datetime import date, datetime
from typing import Any, Protocol

from volunteer_goals.core.types import (
    GoalFilter,
    GoalRecord,
    GoalStatus,
    HistoryFilter,
    HistoryRecord,
    ProgressSnapshot,
    VolunteerRecord,
)


class GoalStore(Protocol):
    def find_many(self, goal_filter: GoalFilter) -> list[GoalRecord]: ...

    def get(self, goal_id: str) -> GoalRecord | None: ...

    def update_status(
        self,
        goal_id: str,
        status: GoalStatus,
        updated_at: datetime,
        *,
        expected_version: int | None = None,
    ) -> bool:
        """Return False when ``expected_version`` no longer matches the stored goal."""
        ...


class ProgressHistoryStore(Protocol):
    def insert_if_absent(self, goal_id: str, week_start: date, snapshot: ProgressSnapshot) -> bool: ...

    def find_many(self, history_filter: HistoryFilter) -> list[HistoryRecord]: ...


class VolunteerStore(Protocol):
    def find_many(self) -> list[VolunteerRecord]: ...

    def update_stats(self, volunteer_id: str, *, goals_count: int, completion_rate: int) -> None: ...


class ActivityLog(Protocol):
    def record(
        self,
        *,
        actor: str,
        action: str,
        resource: str,
        resource_id: str,
        details: dict[str, Any] | None = None,
    ) -> None: ...
