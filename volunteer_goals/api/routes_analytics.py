from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from volunteer_goals.api.deps import get_analytics_service
from volunteer_goals.core.analytics import AnalyticsService
from volunteer_goals.core.types import DateRange

router = APIRouter(prefix="/analytics")


def _resolve_range(service: AnalyticsService, start: date | None, end: date | None) -> DateRange | None:
    if start is None and end is None:
        return None
    default = service.default_range()
    if end is None:
        end = default.end
    if start is None:
        start = end - (default.end - default.start)
    return DateRange(start=start, end=end)


@router.get("")
def get_analytics(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    return asdict(service.get_analytics(_resolve_range(service, start, end)))


@router.get("/overview")
def get_overview(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    return asdict(service.get_overview(_resolve_range(service, start, end)))


@router.get("/goals/stats")
def get_goal_stats(
    volunteer_id: str | None = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    return asdict(service.get_goal_statistics(volunteer_id))


@router.get("/volunteers/{volunteer_id}/trends")
def get_volunteer_trends(
    volunteer_id: str,
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    trends = service.get_volunteer_trends(volunteer_id)
    if trends is None:
        raise HTTPException(status_code=404, detail=f"volunteer {volunteer_id} not found")
    return asdict(trends)


@router.get("/monthly")
def get_monthly_summary(
    year: int | None = Query(default=None, ge=1970, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    volunteer_id: str | None = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    today = service.default_range().end
    summary = service.get_monthly_summary(year or today.year, month or today.month, volunteer_id)
    return asdict(summary)


@router.get("/volunteers/{volunteer_id}/personal")
def get_personal_analytics(
    volunteer_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    personal = service.get_personal_analytics(volunteer_id, _resolve_range(service, start, end))
    if personal is None:
        raise HTTPException(status_code=404, detail=f"volunteer {volunteer_id} not found")
    return asdict(personal)


@router.get("/volunteers/{volunteer_id}/weekly-history")
def get_volunteer_weekly_history(
    volunteer_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> dict:
    history = service.get_volunteer_weekly_history(volunteer_id, start, end)
    if history is None:
        raise HTTPException(status_code=404, detail=f"volunteer {volunteer_id} not found")
    return asdict(history)


@router.get("/performance")
def get_volunteer_performance(service: AnalyticsService = Depends(get_analytics_service)) -> list[dict]:
    return [asdict(row) for row in service.get_volunteer_performance()]


@router.get("/history/summary")
def get_history_summary(service: AnalyticsService = Depends(get_analytics_service)) -> dict:
    return asdict(service.get_history_summary())
