from __future__ import annotations

from datetime import date, datetime, timedelta

from volunteer_goals.core.types import GoalRecord


def week_start_for(day: date) -> date:
    """Sunday that opens the calendar week containing ``day``."""
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def calendar_week(day: date) -> tuple[date, date]:
    start = week_start_for(day)
    return start, start + timedelta(days=6)


def goal_window(goal: GoalRecord, as_of: datetime) -> tuple[date, date]:
    if goal.week_start is None:
        return calendar_week(as_of.date())
    week_end = goal.week_end or goal.week_start + timedelta(days=6)
    return goal.week_start, week_end


def short_label(day: date) -> str:
    return f"{day:%b} {day.day}"


def week_label(start: date, end: date) -> str:
    return f"{short_label(start)} - {short_label(end)}"
