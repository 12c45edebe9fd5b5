from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from loguru import logger

from volunteer_goals.core.errors import StoreError
from volunteer_goals.core.ports import ActivityLog, GoalStore, ProgressHistoryStore, VolunteerStore
from volunteer_goals.core.state_machine import evaluate, transition_action
from volunteer_goals.core.types import (
    GoalFilter,
    GoalRecord,
    GoalStatus,
    ProgressSnapshot,
    WeeklyProcessingResult,
    completion_rate,
)
from volunteer_goals.core.weeks import calendar_week, goal_window

SYSTEM_ACTOR = "system"
_MAX_WRITE_ATTEMPTS = 2


@dataclass(slots=True)
class _GoalOutcome:
    status: GoalStatus
    history_created: bool


def record_transition(
    activity: ActivityLog | None,
    goal: GoalRecord,
    new_status: GoalStatus,
    as_of: datetime,
) -> None:
    if activity is None:
        return
    try:
        activity.record(
            actor=SYSTEM_ACTOR,
            action=transition_action(new_status),
            resource="goal",
            resource_id=goal.id,
            details={
                "goalTitle": goal.title,
                "previousStatus": goal.status.value,
                "newStatus": new_status.value,
                "originalDueDate": goal.due_date.isoformat(),
                "asOf": as_of.isoformat(),
            },
        )
    except Exception:
        logger.exception("activity_log_failed goal_id={} action={}", goal.id, transition_action(new_status))


class WeeklyProcessor:
    """
    Weekly lifecycle pass: snapshots every open goal of the processing week
    into the progress history and advances its status.

    Safe to re-run for the same week. Snapshots are keyed by
    (goal_id, week_start) and inserted only when absent, and status writes
    are no-ops once a goal already has its target status.
    """

    def __init__(
        self,
        goals: GoalStore,
        history: ProgressHistoryStore,
        *,
        volunteers: VolunteerStore | None = None,
        activity: ActivityLog | None = None,
        timeout_sec: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._goals = goals
        self._history = history
        self._volunteers = volunteers
        self._activity = activity
        self._timeout_sec = timeout_sec
        self._clock = clock

    def process_weekly_goals(self, as_of: datetime) -> WeeklyProcessingResult:
        week_start, week_end = calendar_week(as_of.date())
        result = WeeklyProcessingResult(week_start=week_start, week_end=week_end)
        logger.info(
            "weekly processing start as_of={} week_start={} week_end={}",
            as_of.isoformat(),
            week_start.isoformat(),
            week_end.isoformat(),
        )

        selected = self._goals.find_many(
            GoalFilter(exclude_statuses=(GoalStatus.COMPLETED,), window_contains=as_of.date())
        )
        deadline = None if self._timeout_sec is None else self._clock() + self._timeout_sec
        touched_volunteers: set[str] = set()

        for goal in selected:
            if deadline is not None and self._clock() > deadline:
                result.timed_out = True
                logger.warning(
                    "weekly processing timed out processed={} remaining={}",
                    result.processed_goals,
                    len(selected) - result.processed_goals - len(result.failed_goal_ids),
                )
                break
            try:
                outcome = self._process_goal(goal, as_of)
            except Exception:
                result.failed_goal_ids.append(goal.id)
                logger.exception("weekly processing goal failed goal_id={}", goal.id)
                continue

            touched_volunteers.add(goal.volunteer_id)
            result.processed_goals += 1
            if outcome.history_created:
                result.history_entries_created += 1
            if outcome.status == GoalStatus.OVERDUE:
                result.overdue_goals += 1
            elif outcome.status == GoalStatus.COMPLETED:
                result.completed_goals += 1

        self._refresh_volunteer_stats(touched_volunteers)
        result.processed_at = datetime.now(timezone.utc)
        logger.info(
            "weekly processing done processed={} overdue={} completed={} history_created={} failed={} timed_out={}",
            result.processed_goals,
            result.overdue_goals,
            result.completed_goals,
            result.history_entries_created,
            len(result.failed_goal_ids),
            result.timed_out,
        )
        return result

    def _process_goal(self, goal: GoalRecord, as_of: datetime) -> _GoalOutcome:
        target = evaluate(goal, as_of)
        window_start, window_end = goal_window(goal, as_of)
        snapshot = ProgressSnapshot(
            goal_id=goal.id,
            volunteer_id=goal.volunteer_id,
            title=goal.title,
            progress=goal.progress,
            status=goal.status,
            week_start=window_start,
            week_end=window_end,
            notes=goal.notes,
        )
        created = self._history.insert_if_absent(goal.id, window_start, snapshot)
        if not created:
            logger.debug("history exists goal_id={} week_start={}", goal.id, window_start.isoformat())

        current = goal
        for _ in range(_MAX_WRITE_ATTEMPTS):
            if target == current.status:
                return _GoalOutcome(status=current.status, history_created=created)
            updated = self._goals.update_status(
                current.id,
                target,
                datetime.now(timezone.utc),
                expected_version=current.version,
            )
            if updated:
                logger.info(
                    "goal status changed goal_id={} from={} to={}",
                    current.id,
                    current.status.value,
                    target.value,
                )
                record_transition(self._activity, current, target, as_of)
                return _GoalOutcome(status=target, history_created=created)

            # Someone edited the goal after it was read; evaluate the fresh copy.
            fresh = self._goals.get(current.id)
            if fresh is None:
                raise StoreError(f"goal {current.id} disappeared during processing")
            logger.info("goal changed concurrently goal_id={} retrying", current.id)
            current = fresh
            target = evaluate(current, as_of)

        raise StoreError(f"goal {goal.id} kept changing during processing")

    def _refresh_volunteer_stats(self, volunteer_ids: set[str]) -> None:
        if self._volunteers is None or not volunteer_ids:
            return
        for volunteer_id in sorted(volunteer_ids):
            try:
                goals = self._goals.find_many(GoalFilter(volunteer_id=volunteer_id))
                completed = sum(1 for g in goals if g.status == GoalStatus.COMPLETED)
                self._volunteers.update_stats(
                    volunteer_id,
                    goals_count=len(goals),
                    completion_rate=completion_rate(completed, len(goals)),
                )
            except Exception:
                logger.exception("volunteer stats refresh failed volunteer_id={}", volunteer_id)
