from fastapi import APIRouter

from volunteer_goals.jobs.scheduler import scheduler_state

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"ok": True, "jobs": scheduler_state()}
