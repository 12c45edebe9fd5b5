from __future__ import annotations

import os
import socket
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator
from uuid import uuid4
from zoneinfo import ZoneInfo

from loguru import logger

from volunteer_goals.config import settings
from volunteer_goals.core.analytics import AnalyticsService
from volunteer_goals.core.errors import JobAlreadyRunningError
from volunteer_goals.core.overdue_detector import OverdueDetector
from volunteer_goals.core.types import OverdueProcessingResult, WeeklyProcessingResult
from volunteer_goals.core.weekly_processor import WeeklyProcessor
from volunteer_goals.db.repositories.activity_repo import SqlActivityLog
from volunteer_goals.db.repositories.goals_repo import SqlGoalStore
from volunteer_goals.db.repositories.history_repo import SqlProgressHistoryStore
from volunteer_goals.db.repositories.lease_repo import acquire_lease, current_owner, release_lease
from volunteer_goals.db.repositories.volunteers_repo import SqlVolunteerStore
from volunteer_goals.db.session import SessionFactory, get_session

WEEKLY_JOB = "weekly_goals"
OVERDUE_JOB = "overdue_goals"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.timezone))


def local_today() -> date:
    return local_now().date()


def _lease_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


@contextmanager
def job_lease(job_name: str, session_factory: SessionFactory = get_session) -> Iterator[str]:
    owner = _lease_owner()
    with session_factory() as session:
        acquired = acquire_lease(session, job_name, owner, _utc_now(), int(settings.job_lease_ttl_sec))
        holder = None if acquired else current_owner(session, job_name)
    if not acquired:
        logger.warning("job skipped job={} status=leased owner={}", job_name, holder)
        raise JobAlreadyRunningError(job_name, holder)

    logger.info("job lease acquired job={} owner={}", job_name, owner)
    try:
        yield owner
    finally:
        try:
            with session_factory() as session:
                release_lease(session, job_name, owner)
        except Exception:
            # the lease expires on its own after job_lease_ttl_sec
            logger.exception("job lease release failed job={} owner={}", job_name, owner)


def run_weekly_job(
    as_of: datetime | None = None,
    *,
    session_factory: SessionFactory = get_session,
) -> WeeklyProcessingResult:
    as_of = as_of or local_now()
    with job_lease(WEEKLY_JOB, session_factory):
        processor = WeeklyProcessor(
            SqlGoalStore(session_factory),
            SqlProgressHistoryStore(session_factory),
            volunteers=SqlVolunteerStore(session_factory),
            activity=SqlActivityLog(session_factory),
            timeout_sec=float(settings.batch_timeout_sec),
        )
        return processor.process_weekly_goals(as_of)


def run_overdue_job(
    as_of: datetime | None = None,
    *,
    session_factory: SessionFactory = get_session,
) -> OverdueProcessingResult:
    as_of = as_of or local_now()
    with job_lease(OVERDUE_JOB, session_factory):
        detector = OverdueDetector(
            SqlGoalStore(session_factory),
            activity=SqlActivityLog(session_factory),
            timeout_sec=float(settings.batch_timeout_sec),
        )
        return detector.process_overdue_goals(as_of)


def build_analytics_service(session_factory: SessionFactory = get_session) -> AnalyticsService:
    return AnalyticsService(
        SqlGoalStore(session_factory),
        SqlVolunteerStore(session_factory),
        SqlProgressHistoryStore(session_factory),
        default_days=int(settings.analytics_default_days),
        daily_max_days=int(settings.daily_trend_max_days),
        today=local_today,
    )
