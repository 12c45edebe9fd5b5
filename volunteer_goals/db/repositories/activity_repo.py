from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from volunteer_goals.core.errors import StoreError
from volunteer_goals.db.models import ActivityLog
from volunteer_goals.db.repositories.records import to_db_datetime
from volunteer_goals.db.session import SessionFactory, get_session


def log_activity(
    session: Session,
    *,
    actor: str,
    action: str,
    resource: str,
    resource_id: str,
    details: dict[str, Any] | None = None,
) -> None:
    session.add(
        ActivityLog(
            actor=actor,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details_json=json.dumps(details, ensure_ascii=False, default=str) if details else None,
            created_at=to_db_datetime(datetime.now(timezone.utc)),
        )
    )


def list_activity(session: Session, *, resource_id: str | None = None, action: str | None = None) -> list[ActivityLog]:
    stmt = select(ActivityLog)
    if resource_id is not None:
        stmt = stmt.where(ActivityLog.resource_id == resource_id)
    if action is not None:
        stmt = stmt.where(ActivityLog.action == action)
    return list(session.scalars(stmt.order_by(ActivityLog.created_at.asc())).all())


class SqlActivityLog:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    def record(
        self,
        *,
        actor: str,
        action: str,
        resource: str,
        resource_id: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        try:
            with self._session_factory() as session:
                log_activity(
                    session,
                    actor=actor,
                    action=action,
                    resource=resource,
                    resource_id=resource_id,
                    details=details,
                )
        except SQLAlchemyError as exc:
            raise StoreError(f"activity write failed action={action} resource_id={resource_id}: {exc}") from exc
