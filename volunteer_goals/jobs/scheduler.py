from __future__ import annotations

import asyncio
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable

from loguru import logger

from volunteer_goals.config import settings
from volunteer_goals.core.errors import JobAlreadyRunningError
from volunteer_goals.jobs.runner import OVERDUE_JOB, WEEKLY_JOB, run_overdue_job, run_weekly_job

_RUNNERS: dict[str, Callable[[datetime | None], Any]] = {
    WEEKLY_JOB: run_weekly_job,
    OVERDUE_JOB: run_overdue_job,
}
_locks: dict[str, asyncio.Lock] = {}
_last_run_at: dict[str, datetime] = {}
_last_error: dict[str, str] = {}


def _lock_for(job_name: str) -> asyncio.Lock:
    lock = _locks.get(job_name)
    if lock is None:
        lock = asyncio.Lock()
        _locks[job_name] = lock
    return lock


async def trigger_job(job_name: str, as_of: datetime | None = None) -> dict:
    """Run one job in a worker thread. Raises JobAlreadyRunningError if it is already in flight."""
    if job_name not in _RUNNERS:
        raise KeyError(job_name)
    lock = _lock_for(job_name)
    if lock.locked():
        logger.warning("job skipped job={} status=locked", job_name)
        raise JobAlreadyRunningError(job_name)

    async with lock:
        logger.info("job start job={} as_of={}", job_name, as_of.isoformat() if as_of else "now")
        result = await asyncio.to_thread(_RUNNERS[job_name], as_of)
        _last_run_at[job_name] = result.processed_at
        _last_error.pop(job_name, None)
        return asdict(result)


def scheduler_state() -> dict:
    return {
        job_name: {
            "running": _lock_for(job_name).locked(),
            "last_run_at": _last_run_at[job_name].isoformat() if job_name in _last_run_at else None,
            "last_error": _last_error.get(job_name),
        }
        for job_name in _RUNNERS
    }


async def _run_scheduled(job_name: str) -> None:
    try:
        await trigger_job(job_name)
    except JobAlreadyRunningError as exc:
        logger.info("scheduled job skipped job={} owner={}", job_name, exc.owner)
    except Exception as exc:
        _last_error[job_name] = str(exc)
        logger.exception("scheduled job failed job={}", job_name)


async def run_job_scheduler() -> None:
    weekly_interval = max(60, int(settings.weekly_interval_sec))
    overdue_interval = max(60, int(settings.overdue_interval_sec))
    tick = max(1, int(settings.scheduler_tick_sec))
    logger.info(
        "goal job scheduler started (weekly={}s overdue={}s tick={}s)",
        weekly_interval,
        overdue_interval,
        tick,
    )

    loop = asyncio.get_running_loop()
    # the overdue sweep runs right away; the weekly pass waits a full interval
    next_overdue = 0.0
    next_weekly = loop.time() + weekly_interval

    while True:
        now = loop.time()
        if now >= next_overdue:
            next_overdue = now + overdue_interval
            await _run_scheduled(OVERDUE_JOB)
        if now >= next_weekly:
            next_weekly = now + weekly_interval
            await _run_scheduled(WEEKLY_JOB)
        await asyncio.sleep(tick)
