from __future__ import annotations

import json
from datetime import datetime, timezone

from volunteer_goals.core.types import (
    GoalRecord,
    HistoryRecord,
    Performance,
    VolunteerRecord,
    VolunteerStatus,
    parse_priority,
    parse_status,
)
from volunteer_goals.db.models import Goal, ProgressHistory, Volunteer


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_datetime(value: datetime) -> datetime:
    # SQLite keeps no offset; everything is stored as naive UTC.
    return as_utc(value).replace(tzinfo=None)


def dump_tags(tags) -> str | None:
    if not tags:
        return None
    return json.dumps(sorted(tags), ensure_ascii=False)


def load_tags(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(str(t) for t in json.loads(raw))


def goal_to_record(goal: Goal) -> GoalRecord:
    return GoalRecord(
        id=goal.id,
        title=goal.title,
        volunteer_id=goal.volunteer_id,
        status=parse_status(goal.status),
        progress=int(goal.progress),
        due_date=goal.due_date,
        created_at=as_utc(goal.created_at),
        updated_at=as_utc(goal.updated_at),
        priority=parse_priority(goal.priority),
        category=goal.category or "",
        description=goal.description or "",
        week_start=goal.week_start,
        week_end=goal.week_end,
        tags=load_tags(goal.tags_json),
        notes=goal.notes or "",
        version=int(goal.version),
    )


def history_to_record(row: ProgressHistory) -> HistoryRecord:
    return HistoryRecord(
        id=row.id,
        goal_id=row.goal_id,
        volunteer_id=row.volunteer_id,
        title=row.title,
        progress=int(row.progress),
        status=parse_status(row.status),
        week_start=row.week_start,
        week_end=row.week_end,
        created_at=as_utc(row.created_at),
        notes=row.notes or "",
    )


def volunteer_to_record(volunteer: Volunteer) -> VolunteerRecord:
    return VolunteerRecord(
        id=volunteer.id,
        first_name=volunteer.first_name,
        last_name=volunteer.last_name,
        status=VolunteerStatus(volunteer.status),
        performance=Performance(volunteer.performance),
        email=volunteer.email,
        goals_count=int(volunteer.goals_count),
        completion_rate=int(volunteer.completion_rate),
    )
