from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from volunteer_goals.core.errors import StoreError
from volunteer_goals.core.types import HistoryFilter, HistoryRecord, ProgressSnapshot
from volunteer_goals.db.models import ProgressHistory
from volunteer_goals.db.repositories.records import history_to_record, to_db_datetime
from volunteer_goals.db.session import SessionFactory, get_session

_UPSERT_DIALECTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


def insert_snapshot_if_absent(session: Session, snapshot: ProgressSnapshot, created_at: datetime) -> bool:
    """Insert one history row unless (goal_id, week_start) already exists. Returns True when inserted."""
    values = {
        "id": str(uuid.uuid4()),
        "goal_id": snapshot.goal_id,
        "volunteer_id": snapshot.volunteer_id,
        "title": snapshot.title,
        "progress": snapshot.progress,
        "notes": snapshot.notes or None,
        "week_start": snapshot.week_start,
        "week_end": snapshot.week_end,
        "status": snapshot.status.value,
        "created_at": to_db_datetime(created_at),
    }
    dialect_insert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
    if dialect_insert is not None:
        stmt = dialect_insert(ProgressHistory.__table__).values(**values).on_conflict_do_nothing(
            index_elements=["goal_id", "week_start"]
        )
        result = session.execute(stmt)
        return int(getattr(result, "rowcount", 0) or 0) > 0

    existing = session.scalar(
        select(ProgressHistory.id).where(
            ProgressHistory.goal_id == snapshot.goal_id,
            ProgressHistory.week_start == snapshot.week_start,
        )
    )
    if existing is not None:
        return False
    session.execute(insert(ProgressHistory.__table__).values(**values))
    return True


def list_history(session: Session, history_filter: HistoryFilter) -> list[ProgressHistory]:
    stmt = select(ProgressHistory)
    if history_filter.goal_id is not None:
        stmt = stmt.where(ProgressHistory.goal_id == history_filter.goal_id)
    if history_filter.volunteer_id is not None:
        stmt = stmt.where(ProgressHistory.volunteer_id == history_filter.volunteer_id)
    if history_filter.week_start_from is not None:
        stmt = stmt.where(ProgressHistory.week_start >= history_filter.week_start_from)
    if history_filter.week_start_to is not None:
        stmt = stmt.where(ProgressHistory.week_start <= history_filter.week_start_to)
    stmt = stmt.order_by(ProgressHistory.week_start.asc(), ProgressHistory.goal_id.asc())
    return list(session.scalars(stmt).all())


class SqlProgressHistoryStore:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    def insert_if_absent(self, goal_id: str, week_start: date, snapshot: ProgressSnapshot) -> bool:
        if snapshot.goal_id != goal_id or snapshot.week_start != week_start:
            raise StoreError(f"snapshot key mismatch goal_id={goal_id} week_start={week_start}")
        try:
            with self._session_factory() as session:
                return insert_snapshot_if_absent(session, snapshot, datetime.now(timezone.utc))
        except SQLAlchemyError as exc:
            raise StoreError(f"history insert failed goal_id={goal_id}: {exc}") from exc

    def find_many(self, history_filter: HistoryFilter) -> list[HistoryRecord]:
        try:
            with self._session_factory() as session:
                return [history_to_record(row) for row in list_history(session, history_filter)]
        except SQLAlchemyError as exc:
            raise StoreError(f"history query failed: {exc}") from exc
