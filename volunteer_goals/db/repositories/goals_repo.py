from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable

from loguru import logger
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from volunteer_goals.core.errors import StoreError, ValidationError
from volunteer_goals.core.state_machine import append_note, status_after_progress
from volunteer_goals.core.types import (
    GoalFilter,
    GoalPriority,
    GoalRecord,
    GoalStatus,
    parse_priority,
    parse_status,
    validate_progress,
)
from volunteer_goals.db.models import Goal
from volunteer_goals.db.repositories.records import dump_tags, goal_to_record, to_db_datetime
from volunteer_goals.db.session import SessionFactory, get_session


def create_goal(
    session: Session,
    *,
    title: str,
    volunteer_id: str,
    due_date: date,
    status: str | GoalStatus = GoalStatus.PENDING,
    progress: int = 0,
    priority: str | GoalPriority = GoalPriority.MEDIUM,
    category: str = "",
    description: str = "",
    week_start: date | None = None,
    week_end: date | None = None,
    tags: Iterable[str] | None = None,
    notes: str = "",
    created_at: datetime | None = None,
) -> Goal:
    validate_progress(progress)
    if week_start is not None and week_end is not None and week_end < week_start:
        raise ValidationError("week_end must not be before week_start", field="week_end")
    goal = Goal(
        title=title,
        volunteer_id=volunteer_id,
        due_date=due_date,
        status=parse_status(status).value,
        progress=progress,
        priority=parse_priority(priority).value,
        category=category,
        description=description,
        week_start=week_start,
        week_end=week_end,
        tags_json=dump_tags(tags),
        notes=notes,
    )
    if created_at is not None:
        goal.created_at = to_db_datetime(created_at)
        goal.updated_at = goal.created_at
    session.add(goal)
    session.flush()
    session.refresh(goal)
    return goal


def list_goals(session: Session, goal_filter: GoalFilter) -> list[Goal]:
    stmt = select(Goal)
    if goal_filter.statuses is not None:
        stmt = stmt.where(Goal.status.in_([s.value for s in goal_filter.statuses]))
    if goal_filter.exclude_statuses is not None:
        stmt = stmt.where(Goal.status.not_in([s.value for s in goal_filter.exclude_statuses]))
    if goal_filter.due_on_or_before is not None:
        stmt = stmt.where(Goal.due_date <= goal_filter.due_on_or_before)
    if goal_filter.window_contains is not None:
        day = goal_filter.window_contains
        # the open-ended week_end case is finished by GoalFilter.matches
        stmt = stmt.where(
            or_(
                Goal.week_start.is_(None),
                and_(Goal.week_start <= day, or_(Goal.week_end.is_(None), Goal.week_end >= day)),
            )
        )
    if goal_filter.created_from is not None:
        stmt = stmt.where(Goal.created_at >= to_db_datetime(goal_filter.created_from))
    if goal_filter.created_to is not None:
        stmt = stmt.where(Goal.created_at <= to_db_datetime(goal_filter.created_to))
    if goal_filter.volunteer_id is not None:
        stmt = stmt.where(Goal.volunteer_id == goal_filter.volunteer_id)
    return list(session.scalars(stmt.order_by(Goal.created_at.asc(), Goal.id.asc())).all())


def set_goal_status(
    session: Session,
    goal_id: str,
    status: GoalStatus,
    updated_at: datetime,
    *,
    expected_version: int | None = None,
) -> bool:
    """
    Compare-and-set status write. Completed goals are never moved, and when
    ``expected_version`` is given the row must still carry it.
    """
    stmt = update(Goal).where(Goal.id == goal_id, Goal.status != GoalStatus.COMPLETED.value)
    if expected_version is not None:
        stmt = stmt.where(Goal.version == expected_version)
    result = session.execute(
        stmt.values(status=status.value, updated_at=to_db_datetime(updated_at), version=Goal.version + 1)
    )
    return int(getattr(result, "rowcount", 0) or 0) > 0


def set_goal_progress(
    session: Session,
    goal_id: str,
    progress: int,
    updated_at: datetime,
    *,
    note: str | None = None,
) -> Goal | None:
    validate_progress(progress)
    goal = session.get(Goal, goal_id)
    if goal is None:
        return None
    goal.progress = progress
    goal.status = status_after_progress(parse_status(goal.status), progress).value
    if note:
        goal.notes = append_note(goal.notes or "", note, updated_at)
    goal.updated_at = to_db_datetime(updated_at)
    goal.version = goal.version + 1
    session.flush()
    return goal


class SqlGoalStore:
    """Goal store over SQLAlchemy. Every call runs in its own transaction."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    def find_many(self, goal_filter: GoalFilter) -> list[GoalRecord]:
        try:
            with self._session_factory() as session:
                rows = [goal_to_record(g) for g in list_goals(session, goal_filter)]
        except SQLAlchemyError as exc:
            raise StoreError(f"goal query failed: {exc}") from exc
        return [r for r in rows if goal_filter.matches(r)]

    def get(self, goal_id: str) -> GoalRecord | None:
        try:
            with self._session_factory() as session:
                goal = session.get(Goal, goal_id)
                return goal_to_record(goal) if goal is not None else None
        except SQLAlchemyError as exc:
            raise StoreError(f"goal read failed goal_id={goal_id}: {exc}") from exc

    def update_status(
        self,
        goal_id: str,
        status: GoalStatus,
        updated_at: datetime,
        *,
        expected_version: int | None = None,
    ) -> bool:
        try:
            with self._session_factory() as session:
                return set_goal_status(session, goal_id, status, updated_at, expected_version=expected_version)
        except SQLAlchemyError as exc:
            raise StoreError(f"goal status write failed goal_id={goal_id}: {exc}") from exc

    def update_progress(
        self,
        goal_id: str,
        progress: int,
        updated_at: datetime | None = None,
        *,
        note: str | None = None,
    ) -> GoalRecord | None:
        try:
            with self._session_factory() as session:
                goal = set_goal_progress(
                    session, goal_id, progress, updated_at or datetime.now(timezone.utc), note=note
                )
                if goal is None:
                    return None
                logger.info("goal progress updated goal_id={} progress={}", goal_id, progress)
                return goal_to_record(goal)
        except SQLAlchemyError as exc:
            raise StoreError(f"goal progress write failed goal_id={goal_id}: {exc}") from exc
