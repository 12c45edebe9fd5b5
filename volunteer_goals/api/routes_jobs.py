from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from volunteer_goals.api.deps import get_job_trigger
from volunteer_goals.api.schemas import ErrorOut
from volunteer_goals.config import settings
from volunteer_goals.core.errors import JobAlreadyRunningError
from volunteer_goals.jobs.runner import OVERDUE_JOB, WEEKLY_JOB

router = APIRouter(prefix="/jobs", responses={409: {"model": ErrorOut}})


def _localize(as_of: datetime | None) -> datetime | None:
    if as_of is None or as_of.tzinfo is not None:
        return as_of
    return as_of.replace(tzinfo=ZoneInfo(settings.timezone))


async def _run(job_name: str, as_of: datetime | None, trigger) -> dict:
    try:
        return await trigger(job_name, _localize(as_of))
    except JobAlreadyRunningError as exc:
        logger.info("job trigger rejected job={} owner={}", job_name, exc.owner)
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.post("/weekly")
async def run_weekly(
    as_of: datetime | None = Query(default=None),
    trigger=Depends(get_job_trigger),
) -> dict:
    return await _run(WEEKLY_JOB, as_of, trigger)


@router.post("/overdue")
async def run_overdue(
    as_of: datetime | None = Query(default=None),
    trigger=Depends(get_job_trigger),
) -> dict:
    return await _run(OVERDUE_JOB, as_of, trigger)
