from __future__ import annotations


class GoalEngineError(Exception):
    pass


class StoreError(GoalEngineError):
    """Reading or writing a record failed at the storage layer."""


class ValidationError(GoalEngineError):
    """Input rejected at the boundary before it reaches the engine."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class JobAlreadyRunningError(GoalEngineError):
    def __init__(self, job_name: str, owner: str | None = None) -> None:
        super().__init__(f"job {job_name} is already running")
        self.job_name = job_name
        self.owner = owner
