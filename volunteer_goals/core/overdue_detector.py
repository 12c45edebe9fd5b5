from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from volunteer_goals.core.errors import StoreError
from volunteer_goals.core.ports import ActivityLog, GoalStore
from volunteer_goals.core.state_machine import is_overdue
from volunteer_goals.core.types import GoalFilter, GoalRecord, GoalStatus, OverdueProcessingResult
from volunteer_goals.core.weekly_processor import record_transition

OPEN_STATUSES = (GoalStatus.PENDING, GoalStatus.IN_PROGRESS)
_MAX_WRITE_ATTEMPTS = 2


class OverdueDetector:
    """Daily sweep flipping lapsed open goals to overdue. Never touches progress history."""

    def __init__(
        self,
        goals: GoalStore,
        *,
        activity: ActivityLog | None = None,
        timeout_sec: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._goals = goals
        self._activity = activity
        self._timeout_sec = timeout_sec
        self._clock = clock

    def process_overdue_goals(self, as_of: datetime) -> OverdueProcessingResult:
        result = OverdueProcessingResult()
        candidates = self._goals.find_many(GoalFilter(statuses=OPEN_STATUSES, due_on_or_before=as_of.date()))
        logger.info("overdue sweep start as_of={} candidates={}", as_of.isoformat(), len(candidates))
        deadline = None if self._timeout_sec is None else self._clock() + self._timeout_sec

        for goal in candidates:
            if deadline is not None and self._clock() > deadline:
                result.timed_out = True
                logger.warning("overdue sweep timed out flipped={}", result.overdue_goals)
                break
            try:
                flipped = self._mark_overdue(goal, as_of)
            except Exception:
                result.failed_goal_ids.append(goal.id)
                logger.exception("overdue sweep goal failed goal_id={}", goal.id)
                continue
            if flipped:
                result.overdue_goals += 1

        result.processed_at = datetime.now(timezone.utc)
        logger.info(
            "overdue sweep done overdue={} failed={} timed_out={}",
            result.overdue_goals,
            len(result.failed_goal_ids),
            result.timed_out,
        )
        return result

    def _mark_overdue(self, goal: GoalRecord, as_of: datetime) -> bool:
        current = goal
        for _ in range(_MAX_WRITE_ATTEMPTS):
            if current.status not in OPEN_STATUSES:
                return False
            if not is_overdue(current.due_date, as_of):
                return False
            updated = self._goals.update_status(
                current.id,
                GoalStatus.OVERDUE,
                datetime.now(timezone.utc),
                expected_version=current.version,
            )
            if updated:
                logger.info("goal marked overdue goal_id={} due_date={}", current.id, current.due_date.isoformat())
                record_transition(self._activity, current, GoalStatus.OVERDUE, as_of)
                return True
            fresh = self._goals.get(current.id)
            if fresh is None:
                raise StoreError(f"goal {current.id} disappeared during overdue sweep")
            current = fresh
        raise StoreError(f"goal {goal.id} kept changing during overdue sweep")
