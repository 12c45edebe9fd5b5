from __future__ import annotations

from volunteer_goals.core.analytics import AnalyticsService
from volunteer_goals.db.repositories.activity_repo import SqlActivityLog
from volunteer_goals.db.repositories.goals_repo import SqlGoalStore
from volunteer_goals.jobs.runner import build_analytics_service
from volunteer_goals.jobs.scheduler import trigger_job


def get_analytics_service() -> AnalyticsService:
    return build_analytics_service()


def get_goal_store() -> SqlGoalStore:
    return SqlGoalStore()


def get_activity_log() -> SqlActivityLog:
    return SqlActivityLog()


def get_job_trigger():
    return trigger_job
