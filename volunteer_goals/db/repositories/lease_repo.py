"""
Row-per-job leases that keep two processes from running the same batch.

A lease whose ``expires_at`` has passed is treated as abandoned and can be
taken over by the next caller.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from volunteer_goals.db.models import JobLease
from volunteer_goals.db.repositories.records import to_db_datetime


def _ensure_row(session: Session, job_name: str) -> None:
    if session.get_bind().dialect.name == "sqlite":
        session.execute(sqlite_insert(JobLease.__table__).values(job_name=job_name).on_conflict_do_nothing())
        return
    if session.get(JobLease, job_name) is None:
        session.add(JobLease(job_name=job_name))
        session.flush()


def acquire_lease(session: Session, job_name: str, owner: str, now: datetime, ttl_sec: int) -> bool:
    _ensure_row(session, job_name)
    db_now = to_db_datetime(now)
    result = session.execute(
        update(JobLease)
        .where(
            JobLease.job_name == job_name,
            or_(JobLease.owner.is_(None), JobLease.expires_at.is_(None), JobLease.expires_at <= db_now),
        )
        .values(owner=owner, acquired_at=db_now, expires_at=db_now + timedelta(seconds=ttl_sec))
    )
    return int(getattr(result, "rowcount", 0) or 0) > 0


def release_lease(session: Session, job_name: str, owner: str) -> bool:
    result = session.execute(
        update(JobLease)
        .where(JobLease.job_name == job_name, JobLease.owner == owner)
        .values(owner=None, acquired_at=None, expires_at=None)
    )
    return int(getattr(result, "rowcount", 0) or 0) > 0


def current_owner(session: Session, job_name: str) -> str | None:
    return session.scalar(select(JobLease.owner).where(JobLease.job_name == job_name))
