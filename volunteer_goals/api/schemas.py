from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class ProgressUpdate(BaseModel):
    progress: int = Field(ge=0, le=100)
    notes: str | None = Field(default=None, max_length=2000)


class GoalOut(BaseModel):
    id: str
    title: str
    volunteer_id: str
    status: str
    progress: int
    priority: str
    category: str
    due_date: date
    week_start: date | None = None
    week_end: date | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str = ""
    version: int
    created_at: datetime
    updated_at: datetime


class ErrorOut(BaseModel):
    detail: str
    field: str | None = None
