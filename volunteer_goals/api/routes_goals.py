from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from volunteer_goals.api.deps import get_activity_log, get_goal_store
from volunteer_goals.api.schemas import ErrorOut, GoalOut, ProgressUpdate
from volunteer_goals.core.types import GoalRecord

router = APIRouter(prefix="/goals", responses={404: {"model": ErrorOut}})


def _goal_out(goal: GoalRecord) -> GoalOut:
    return GoalOut(
        id=goal.id,
        title=goal.title,
        volunteer_id=goal.volunteer_id,
        status=goal.status.value,
        progress=goal.progress,
        priority=goal.priority.value,
        category=goal.category,
        due_date=goal.due_date,
        week_start=goal.week_start,
        week_end=goal.week_end,
        tags=sorted(goal.tags),
        notes=goal.notes,
        version=goal.version,
        created_at=goal.created_at,
        updated_at=goal.updated_at,
    )


@router.get("/{goal_id}", response_model=GoalOut)
def get_goal(goal_id: str, store=Depends(get_goal_store)) -> GoalOut:
    goal = store.get(goal_id)
    if goal is None:
        raise HTTPException(status_code=404, detail=f"goal {goal_id} not found")
    return _goal_out(goal)


@router.patch("/{goal_id}/progress", response_model=GoalOut)
def update_goal_progress(
    goal_id: str,
    payload: ProgressUpdate,
    store=Depends(get_goal_store),
    activity=Depends(get_activity_log),
) -> GoalOut:
    previous = store.get(goal_id)
    if previous is None:
        raise HTTPException(status_code=404, detail=f"goal {goal_id} not found")
    goal = store.update_progress(goal_id, payload.progress, note=payload.notes)
    if goal is None:
        raise HTTPException(status_code=404, detail=f"goal {goal_id} not found")

    try:
        activity.record(
            actor="api",
            action="UPDATE_GOAL_PROGRESS",
            resource="goal",
            resource_id=goal_id,
            details={
                "previousProgress": previous.progress,
                "newProgress": goal.progress,
                "goalTitle": goal.title,
            },
        )
    except Exception:
        logger.exception("activity_log_failed goal_id={} action=UPDATE_GOAL_PROGRESS", goal_id)
    return _goal_out(goal)
