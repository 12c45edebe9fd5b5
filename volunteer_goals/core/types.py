from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum

from volunteer_goals.core.errors import ValidationError


class GoalStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    OVERDUE = "overdue"


class GoalPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class VolunteerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Performance(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def parse_status(value: str | GoalStatus) -> GoalStatus:
    if isinstance(value, GoalStatus):
        return value
    raw = (value or "").strip().lower().replace("_", "-")
    try:
        return GoalStatus(raw)
    except ValueError:
        raise ValidationError(f"unknown goal status: {value!r}", field="status") from None


def parse_priority(value: str | GoalPriority) -> GoalPriority:
    if isinstance(value, GoalPriority):
        return value
    raw = (value or "").strip().capitalize()
    try:
        return GoalPriority(raw)
    except ValueError:
        raise ValidationError(f"unknown goal priority: {value!r}", field="priority") from None


def validate_progress(progress: int) -> int:
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise ValidationError("progress must be an integer", field="progress")
    if progress < 0 or progress > 100:
        raise ValidationError("progress must be between 0 and 100", field="progress")
    return progress


@dataclass(slots=True)
class GoalRecord:
    id: str
    title: str
    volunteer_id: str
    status: GoalStatus
    progress: int
    due_date: date
    created_at: datetime
    updated_at: datetime
    priority: GoalPriority = GoalPriority.MEDIUM
    category: str = ""
    description: str = ""
    week_start: date | None = None
    week_end: date | None = None
    tags: frozenset[str] = frozenset()
    notes: str = ""
    version: int = 1


@dataclass(slots=True)
class ProgressSnapshot:
    """Values copied from a goal at snapshot time."""

    goal_id: str
    volunteer_id: str
    title: str
    progress: int
    status: GoalStatus
    week_start: date
    week_end: date
    notes: str = ""


@dataclass(slots=True)
class HistoryRecord:
    id: str
    goal_id: str
    volunteer_id: str
    title: str
    progress: int
    status: GoalStatus
    week_start: date
    week_end: date
    created_at: datetime
    notes: str = ""


@dataclass(slots=True)
class VolunteerRecord:
    id: str
    first_name: str
    last_name: str
    status: VolunteerStatus = VolunteerStatus.ACTIVE
    performance: Performance = Performance.MEDIUM
    email: str = ""
    goals_count: int = 0
    completion_rate: int = 0

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(slots=True)
class GoalFilter:
    statuses: tuple[GoalStatus, ...] | None = None
    exclude_statuses: tuple[GoalStatus, ...] | None = None
    due_on_or_before: date | None = None
    # goals with no explicit window always match
    window_contains: date | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    volunteer_id: str | None = None

    def matches(self, goal: GoalRecord) -> bool:
        if self.statuses is not None and goal.status not in self.statuses:
            return False
        if self.exclude_statuses is not None and goal.status in self.exclude_statuses:
            return False
        if self.due_on_or_before is not None and not goal.due_date <= self.due_on_or_before:
            return False
        if self.window_contains is not None and goal.week_start is not None:
            week_end = goal.week_end or goal.week_start + timedelta(days=6)
            if not goal.week_start <= self.window_contains <= week_end:
                return False
        if self.created_from is not None and goal.created_at < self.created_from:
            return False
        if self.created_to is not None and goal.created_at > self.created_to:
            return False
        if self.volunteer_id is not None and goal.volunteer_id != self.volunteer_id:
            return False
        return True


@dataclass(slots=True)
class HistoryFilter:
    goal_id: str | None = None
    volunteer_id: str | None = None
    week_start_from: date | None = None
    week_start_to: date | None = None

    def matches(self, entry: HistoryRecord) -> bool:
        if self.goal_id is not None and entry.goal_id != self.goal_id:
            return False
        if self.volunteer_id is not None and entry.volunteer_id != self.volunteer_id:
            return False
        if self.week_start_from is not None and entry.week_start < self.week_start_from:
            return False
        if self.week_start_to is not None and entry.week_start > self.week_start_to:
            return False
        return True


@dataclass(slots=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValidationError("range end must not be before start", field="end")

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass(slots=True)
class WeeklyProcessingResult:
    processed_goals: int = 0
    overdue_goals: int = 0
    completed_goals: int = 0
    history_entries_created: int = 0
    failed_goal_ids: list[str] = field(default_factory=list)
    week_start: date | None = None
    week_end: date | None = None
    processed_at: datetime | None = None
    timed_out: bool = False


@dataclass(slots=True)
class OverdueProcessingResult:
    overdue_goals: int = 0
    failed_goal_ids: list[str] = field(default_factory=list)
    processed_at: datetime | None = None
    timed_out: bool = False


def divide_half_up(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)


def completion_rate(completed: int, total: int) -> int:
    return divide_half_up(completed * 100, total)
