from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from volunteer_goals.core.errors import StoreError
from volunteer_goals.core.types import Performance, VolunteerRecord, VolunteerStatus
from volunteer_goals.db.models import Volunteer
from volunteer_goals.db.repositories.records import to_db_datetime, volunteer_to_record
from volunteer_goals.db.session import SessionFactory, get_session


def create_volunteer(
    session: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    status: VolunteerStatus = VolunteerStatus.ACTIVE,
    performance: Performance = Performance.MEDIUM,
) -> Volunteer:
    volunteer = Volunteer(
        first_name=first_name,
        last_name=last_name,
        email=email.strip().lower(),
        status=VolunteerStatus(status).value,
        performance=Performance(performance).value,
    )
    session.add(volunteer)
    session.flush()
    session.refresh(volunteer)
    return volunteer


def list_volunteers(session: Session) -> list[Volunteer]:
    stmt = select(Volunteer).order_by(Volunteer.last_name.asc(), Volunteer.first_name.asc(), Volunteer.id.asc())
    return list(session.scalars(stmt).all())


def set_volunteer_stats(session: Session, volunteer_id: str, *, goals_count: int, completion_rate: int) -> bool:
    result = session.execute(
        update(Volunteer)
        .where(Volunteer.id == volunteer_id)
        .values(
            goals_count=goals_count,
            completion_rate=completion_rate,
            updated_at=to_db_datetime(datetime.now(timezone.utc)),
        )
    )
    return int(getattr(result, "rowcount", 0) or 0) > 0


class SqlVolunteerStore:
    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    def find_many(self) -> list[VolunteerRecord]:
        try:
            with self._session_factory() as session:
                return [volunteer_to_record(v) for v in list_volunteers(session)]
        except SQLAlchemyError as exc:
            raise StoreError(f"volunteer query failed: {exc}") from exc

    def update_stats(self, volunteer_id: str, *, goals_count: int, completion_rate: int) -> None:
        try:
            with self._session_factory() as session:
                set_volunteer_stats(session, volunteer_id, goals_count=goals_count, completion_rate=completion_rate)
        except SQLAlchemyError as exc:
            raise StoreError(f"volunteer stats write failed volunteer_id={volunteer_id}: {exc}") from exc
