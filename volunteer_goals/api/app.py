import asyncio

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from volunteer_goals.api.routes_analytics import router as analytics_router
from volunteer_goals.api.routes_goals import router as goals_router
from volunteer_goals.api.routes_health import router as health_router
from volunteer_goals.api.routes_jobs import router as jobs_router
from volunteer_goals.api.schemas import ErrorOut
from volunteer_goals.config import settings
from volunteer_goals.core.errors import JobAlreadyRunningError, StoreError, ValidationError
from volunteer_goals.jobs.scheduler import run_job_scheduler

app = FastAPI(title="volunteer-goals")

app.include_router(health_router)
app.include_router(jobs_router)
app.include_router(analytics_router)
app.include_router(goals_router)

_scheduler_task: asyncio.Task | None = None


@app.exception_handler(ValidationError)
async def _validation_error(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content=ErrorOut(detail=str(exc), field=exc.field).model_dump())


@app.exception_handler(JobAlreadyRunningError)
async def _job_running(_request: Request, exc: JobAlreadyRunningError) -> JSONResponse:
    return JSONResponse(status_code=409, content=ErrorOut(detail=str(exc)).model_dump())


@app.exception_handler(StoreError)
async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("store error path={} error={}", request.url.path, exc)
    return JSONResponse(status_code=503, content=ErrorOut(detail="storage unavailable").model_dump())


@app.on_event("startup")
async def on_startup() -> None:
    if settings.scheduler_enabled:
        global _scheduler_task
        if _scheduler_task is None or _scheduler_task.done():
            _scheduler_task = asyncio.create_task(run_job_scheduler())


@app.on_event("shutdown")
async def on_shutdown() -> None:
    if _scheduler_task and not _scheduler_task.done():
        _scheduler_task.cancel()
