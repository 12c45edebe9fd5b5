from __future__ import annotations

from datetime import date, datetime, time

from volunteer_goals.core.types import GoalRecord, GoalStatus

TERMINAL_STATUSES = frozenset({GoalStatus.COMPLETED})


def is_overdue(due_date: date, evaluated_at: datetime) -> bool:
    # due dates count from midnight in the evaluation timezone
    return datetime.combine(due_date, time.min, tzinfo=evaluated_at.tzinfo) < evaluated_at


def next_status(
    status: GoalStatus,
    progress: int,
    due_date: date,
    evaluated_at: datetime,
) -> GoalStatus:
    """
    Status a goal should have at ``evaluated_at``.
    Rules, first match wins:
    - completed stays completed
    - progress 100 -> completed, even past the due date
    - due date lapsed -> overdue
    - pending with some progress -> in-progress
    - otherwise unchanged
    """
    if status in TERMINAL_STATUSES:
        return status
    if progress >= 100:
        return GoalStatus.COMPLETED
    if is_overdue(due_date, evaluated_at):
        return GoalStatus.OVERDUE
    if progress > 0 and status == GoalStatus.PENDING:
        return GoalStatus.IN_PROGRESS
    return status


def evaluate(goal: GoalRecord, evaluated_at: datetime) -> GoalStatus:
    return next_status(goal.status, goal.progress, goal.due_date, evaluated_at)


def transition_action(status: GoalStatus) -> str:
    return {
        GoalStatus.COMPLETED: "MARK_GOAL_COMPLETED",
        GoalStatus.OVERDUE: "MARK_GOAL_OVERDUE",
        GoalStatus.IN_PROGRESS: "MARK_GOAL_IN_PROGRESS",
    }.get(status, "UPDATE_GOAL_STATUS")


def status_after_progress(status: GoalStatus, progress: int) -> GoalStatus:
    """Status change caused by a manual progress edit. Due dates are left to the sweeps."""
    if status in TERMINAL_STATUSES:
        return status
    if progress >= 100:
        return GoalStatus.COMPLETED
    if progress > 0 and status == GoalStatus.PENDING:
        return GoalStatus.IN_PROGRESS
    return status


def append_note(notes: str, note: str, at: datetime) -> str:
    line = f"{at.isoformat()}: {note.strip()}"
    return f"{notes}\n{line}" if notes else line
