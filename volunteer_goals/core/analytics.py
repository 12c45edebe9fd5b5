from __future__ import annotations

from calendar import monthrange
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Iterable

from loguru import logger

from volunteer_goals.core.history_analytics import (
    HistorySummary,
    MonthlySummary,
    VolunteerTrends,
    VolunteerWeeklyHistory,
    WeeklyHistoryTrend,
    history_summary,
    monthly_summary,
    streak_count,
    volunteer_trends,
    volunteer_weekly_history,
    weekly_history_trends,
)
from volunteer_goals.core.ports import GoalStore, ProgressHistoryStore, VolunteerStore
from volunteer_goals.core.types import (
    DateRange,
    GoalFilter,
    GoalRecord,
    GoalStatus,
    HistoryFilter,
    HistoryRecord,
    Performance,
    VolunteerRecord,
    VolunteerStatus,
    completion_rate,
    divide_half_up,
)
from volunteer_goals.core.weeks import short_label, week_label, week_start_for

UNCATEGORIZED = "Uncategorized"
DAILY_TREND_MAX_DAYS = 30
UPCOMING_DEADLINE_DAYS = 7
UPCOMING_DEADLINE_LIMIT = 5
TREND_WEEKS = 12
PRODUCTIVE_DAYS_WINDOW = 30
WEEKLY_HISTORY_MONTHS = 6
WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
# completed-goal counts that unlock an achievement
GOAL_MILESTONES = (
    (1, "First Goal Completed", "Completed your first goal!"),
    (5, "Goal Achiever", "Completed 5 goals"),
    (10, "Goal Master", "Completed 10 goals"),
)


@dataclass(slots=True)
class Overview:
    total_volunteers: int
    active_volunteers: int
    total_goals: int
    completed_goals: int
    completion_rate: int
    overdue_goals: int


@dataclass(slots=True)
class CompletionTrend:
    date: str
    completed: int
    total: int
    period: str


@dataclass(slots=True)
class CompletionTrends:
    daily: list[CompletionTrend]
    weekly: list[CompletionTrend]


@dataclass(slots=True)
class NamedCount:
    name: str
    value: int


@dataclass(slots=True)
class VolunteerActivity:
    volunteer_id: str
    name: str
    total_goals: int
    completed_goals: int
    completion_rate: int


@dataclass(slots=True)
class AnalyticsData:
    start: date
    end: date
    overview: Overview
    completion_trends: CompletionTrends
    performance_distribution: list[NamedCount]
    category_breakdown: list[NamedCount]
    volunteer_activity: list[VolunteerActivity]


@dataclass(slots=True)
class UpcomingDeadline:
    goal_id: str
    title: str
    due_date: date
    status: GoalStatus


@dataclass(slots=True)
class GoalStatistics:
    total_goals: int
    completed_goals: int
    pending_goals: int
    in_progress_goals: int
    overdue_goals: int
    completion_rate: int
    average_progress: int
    categories_count: int
    upcoming_deadlines: list[UpcomingDeadline] = field(default_factory=list)


def _count_completed(goals: Iterable[GoalRecord]) -> int:
    return sum(1 for g in goals if g.status == GoalStatus.COMPLETED)


def build_overview(volunteers: list[VolunteerRecord], goals: list[GoalRecord]) -> Overview:
    total = len(goals)
    completed = _count_completed(goals)
    return Overview(
        total_volunteers=len(volunteers),
        active_volunteers=sum(1 for v in volunteers if v.status == VolunteerStatus.ACTIVE),
        total_goals=total,
        completed_goals=completed,
        completion_rate=completion_rate(completed, total),
        overdue_goals=sum(1 for g in goals if g.status == GoalStatus.OVERDUE),
    )


def daily_trends(
    goals: list[GoalRecord],
    date_range: DateRange,
    *,
    max_days: int = DAILY_TREND_MAX_DAYS,
) -> list[CompletionTrend]:
    """
    One bucket per calendar day. Ranges longer than ``max_days`` keep only
    their final ``max_days`` days.
    """
    start = max(date_range.start, date_range.end - timedelta(days=max_days - 1))
    totals: Counter[date] = Counter()
    completed: Counter[date] = Counter()
    for goal in goals:
        day = goal.created_at.date()
        if not start <= day <= date_range.end:
            continue
        totals[day] += 1
        if goal.status == GoalStatus.COMPLETED:
            completed[day] += 1

    trends: list[CompletionTrend] = []
    day = start
    while day <= date_range.end:
        trends.append(
            CompletionTrend(
                date=day.isoformat(),
                completed=completed[day],
                total=totals[day],
                period=short_label(day),
            )
        )
        day += timedelta(days=1)
    return trends


def weekly_trends(goals: list[GoalRecord], date_range: DateRange) -> list[CompletionTrend]:
    totals: Counter[date] = Counter()
    completed: Counter[date] = Counter()
    for goal in goals:
        day = goal.created_at.date()
        if not date_range.contains(day):
            continue
        key = week_start_for(day)
        totals[key] += 1
        if goal.status == GoalStatus.COMPLETED:
            completed[key] += 1

    trends: list[CompletionTrend] = []
    week_start = week_start_for(date_range.start)
    while week_start <= date_range.end:
        week_end = week_start + timedelta(days=6)
        trends.append(
            CompletionTrend(
                date=week_start.isoformat(),
                completed=completed[week_start],
                total=totals[week_start],
                period=week_label(week_start, week_end),
            )
        )
        week_start += timedelta(days=7)
    return trends


def performance_distribution(volunteers: list[VolunteerRecord]) -> list[NamedCount]:
    counts = Counter(v.performance for v in volunteers)
    return [NamedCount(name=tier.value, value=counts[tier]) for tier in Performance]


def category_breakdown(goals: list[GoalRecord]) -> list[NamedCount]:
    counts = Counter((g.category or "").strip() or UNCATEGORIZED for g in goals)
    return [NamedCount(name=name, value=value) for name, value in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]


def volunteer_activity(volunteers: list[VolunteerRecord], goals: list[GoalRecord]) -> list[VolunteerActivity]:
    by_volunteer: dict[str, list[GoalRecord]] = {}
    for goal in goals:
        by_volunteer.setdefault(goal.volunteer_id, []).append(goal)

    rows = []
    for volunteer in volunteers:
        owned = by_volunteer.get(volunteer.id, [])
        completed = _count_completed(owned)
        rows.append(
            VolunteerActivity(
                volunteer_id=volunteer.id,
                name=volunteer.name,
                total_goals=len(owned),
                completed_goals=completed,
                completion_rate=completion_rate(completed, len(owned)),
            )
        )
    rows.sort(key=lambda r: (-r.completion_rate, -r.total_goals, r.name))
    return rows


def goal_statistics(goals: list[GoalRecord], today: date) -> GoalStatistics:
    total = len(goals)
    by_status = Counter(g.status for g in goals)
    average = divide_half_up(sum(g.progress for g in goals), total)
    horizon = today + timedelta(days=UPCOMING_DEADLINE_DAYS)
    upcoming = sorted(
        (g for g in goals if g.status != GoalStatus.COMPLETED and today <= g.due_date <= horizon),
        key=lambda g: (g.due_date, g.title),
    )[:UPCOMING_DEADLINE_LIMIT]
    return GoalStatistics(
        total_goals=total,
        completed_goals=by_status[GoalStatus.COMPLETED],
        pending_goals=by_status[GoalStatus.PENDING],
        in_progress_goals=by_status[GoalStatus.IN_PROGRESS],
        overdue_goals=by_status[GoalStatus.OVERDUE],
        completion_rate=completion_rate(by_status[GoalStatus.COMPLETED], total),
        average_progress=average,
        categories_count=len({g.category for g in goals if g.category}),
        upcoming_deadlines=[
            UpcomingDeadline(goal_id=g.id, title=g.title, due_date=g.due_date, status=g.status) for g in upcoming
        ],
    )


def performance_score(rate: int, average_progress: int) -> int:
    """Completion rate weighted 70/30 against average progress."""
    return divide_half_up(7 * rate + 3 * average_progress, 10)


@dataclass(slots=True)
class VolunteerPerformance:
    volunteer_id: str
    name: str
    performance: int
    completion_rate: int
    goals_count: int


def volunteer_performance(volunteers: list[VolunteerRecord], goals: list[GoalRecord]) -> list[VolunteerPerformance]:
    by_volunteer: dict[str, list[GoalRecord]] = {}
    for goal in goals:
        by_volunteer.setdefault(goal.volunteer_id, []).append(goal)

    rows = []
    for volunteer in volunteers:
        owned = by_volunteer.get(volunteer.id, [])
        rate = completion_rate(_count_completed(owned), len(owned))
        average = divide_half_up(sum(g.progress for g in owned), len(owned))
        rows.append(
            VolunteerPerformance(
                volunteer_id=volunteer.id,
                name=volunteer.name,
                performance=performance_score(rate, average),
                completion_rate=rate,
                goals_count=len(owned),
            )
        )
    rows.sort(key=lambda r: (-r.performance, -r.goals_count, r.name))
    return rows


@dataclass(slots=True)
class CategoryCompletion:
    category: str
    completion_rate: int
    total_goals: int


def category_stats(goals: list[GoalRecord]) -> list[CategoryCompletion]:
    totals: Counter[str] = Counter()
    completed: Counter[str] = Counter()
    for goal in goals:
        name = (goal.category or "").strip() or UNCATEGORIZED
        totals[name] += 1
        if goal.status == GoalStatus.COMPLETED:
            completed[name] += 1
    rows = [
        CategoryCompletion(category=name, completion_rate=completion_rate(completed[name], total), total_goals=total)
        for name, total in totals.items()
    ]
    rows.sort(key=lambda r: (-r.total_goals, r.category))
    return rows


@dataclass(slots=True)
class Achievement:
    id: str
    title: str
    description: str
    earned_on: date


def achievements(goals: list[GoalRecord], streak: int, today: date) -> list[Achievement]:
    """
    Milestones for 1, 5 and 10 completed goals, each dated by the goal that
    reached it, plus "Perfect Week" while a completion streak is running.
    """
    completed = sorted((g for g in goals if g.status == GoalStatus.COMPLETED), key=lambda g: g.updated_at)
    earned = [
        Achievement(id=str(index), title=title, description=description, earned_on=completed[count - 1].updated_at.date())
        for index, (count, title, description) in enumerate(GOAL_MILESTONES, start=1)
        if len(completed) >= count
    ]
    if streak >= 1:
        earned.append(
            Achievement(
                id=str(len(GOAL_MILESTONES) + 1),
                title="Perfect Week",
                description="Completed goals in the latest snapshot week",
                earned_on=today,
            )
        )
    return earned


@dataclass(slots=True)
class ProductiveDay:
    day: str
    completed_goals: int


def productive_days(goals: list[GoalRecord], today: date, *, window_days: int = PRODUCTIVE_DAYS_WINDOW) -> list[ProductiveDay]:
    """Completed goals per weekday, dated by their last update within the window."""
    since = today - timedelta(days=window_days)
    counts: Counter[str] = Counter()
    for goal in goals:
        if goal.status != GoalStatus.COMPLETED:
            continue
        day = goal.updated_at.date()
        if since <= day <= today:
            counts[WEEKDAYS[(day.weekday() + 1) % 7]] += 1
    return [ProductiveDay(day=name, completed_goals=counts[name]) for name in WEEKDAYS]


@dataclass(slots=True)
class PersonalAnalytics:
    volunteer_id: str
    volunteer_name: str
    overall_completion_rate: int
    performance_score: int
    streak_count: int
    weekly_trends: list[WeeklyHistoryTrend] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    category_stats: list[CategoryCompletion] = field(default_factory=list)
    productive_days: list[ProductiveDay] = field(default_factory=list)


def personal_analytics(
    volunteer: VolunteerRecord,
    goals: list[GoalRecord],
    history: list[HistoryRecord],
    today: date,
) -> PersonalAnalytics:
    rate = completion_rate(_count_completed(goals), len(goals))
    average = divide_half_up(sum(g.progress for g in goals), len(goals))
    streak = streak_count(history)
    return PersonalAnalytics(
        volunteer_id=volunteer.id,
        volunteer_name=volunteer.name,
        overall_completion_rate=rate,
        performance_score=performance_score(rate, average),
        streak_count=streak,
        weekly_trends=weekly_history_trends(history),
        achievements=achievements(goals, streak, today),
        category_stats=category_stats(goals),
        productive_days=productive_days(goals, today),
    )


def months_before(day: date, months: int) -> date:
    index = day.year * 12 + day.month - 1 - months
    year, month = divmod(index, 12)
    return day.replace(year=year, month=month + 1, day=min(day.day, monthrange(year, month + 1)[1]))


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


class AnalyticsService:
    """Read-only reporting over the goal, volunteer and progress-history stores."""

    def __init__(
        self,
        goals: GoalStore,
        volunteers: VolunteerStore,
        history: ProgressHistoryStore,
        *,
        default_days: int = 30,
        daily_max_days: int = DAILY_TREND_MAX_DAYS,
        today: Callable[[], date] = _today_utc,
    ) -> None:
        self._goals = goals
        self._volunteers = volunteers
        self._history = history
        self._default_days = default_days
        self._daily_max_days = daily_max_days
        self._today = today

    def default_range(self) -> DateRange:
        end = self._today()
        return DateRange(start=end - timedelta(days=self._default_days), end=end)

    def _goals_created_in(self, date_range: DateRange, volunteer_id: str | None = None) -> list[GoalRecord]:
        return self._goals.find_many(
            GoalFilter(
                created_from=datetime.combine(date_range.start, time.min, tzinfo=timezone.utc),
                created_to=datetime.combine(date_range.end, time.max, tzinfo=timezone.utc),
                volunteer_id=volunteer_id,
            )
        )

    def get_analytics(self, date_range: DateRange | None = None) -> AnalyticsData:
        date_range = date_range or self.default_range()
        goals = self._goals_created_in(date_range)
        volunteers = self._volunteers.find_many()
        logger.debug(
            "analytics start={} end={} goals={} volunteers={}",
            date_range.start.isoformat(),
            date_range.end.isoformat(),
            len(goals),
            len(volunteers),
        )
        return AnalyticsData(
            start=date_range.start,
            end=date_range.end,
            overview=build_overview(volunteers, goals),
            completion_trends=CompletionTrends(
                daily=daily_trends(goals, date_range, max_days=self._daily_max_days),
                weekly=weekly_trends(goals, date_range),
            ),
            performance_distribution=performance_distribution(volunteers),
            category_breakdown=category_breakdown(goals),
            volunteer_activity=volunteer_activity(volunteers, goals),
        )

    def get_overview(self, date_range: DateRange | None = None) -> Overview:
        date_range = date_range or self.default_range()
        return build_overview(self._volunteers.find_many(), self._goals_created_in(date_range))

    def get_goal_statistics(self, volunteer_id: str | None = None) -> GoalStatistics:
        goals = self._goals.find_many(GoalFilter(volunteer_id=volunteer_id))
        return goal_statistics(goals, self._today())

    def _find_volunteer(self, volunteer_id: str) -> VolunteerRecord | None:
        for volunteer in self._volunteers.find_many():
            if volunteer.id == volunteer_id:
                return volunteer
        return None

    def get_volunteer_trends(self, volunteer_id: str) -> VolunteerTrends | None:
        volunteer = self._find_volunteer(volunteer_id)
        if volunteer is None:
            return None
        today = self._today()
        history = self._history.find_many(
            HistoryFilter(volunteer_id=volunteer_id, week_start_from=today - timedelta(weeks=TREND_WEEKS), week_start_to=today)
        )
        return volunteer_trends(history, volunteer)

    def get_monthly_summary(self, year: int, month: int, volunteer_id: str | None = None) -> MonthlySummary:
        first = date(year, month, 1)
        last = (first.replace(day=28) + timedelta(days=4)).replace(day=1) - timedelta(days=1)
        history = self._history.find_many(
            HistoryFilter(volunteer_id=volunteer_id, week_start_from=first, week_start_to=last)
        )
        goal_ids = {entry.goal_id for entry in history}
        goals_by_id = {
            g.id: g for g in self._goals.find_many(GoalFilter(volunteer_id=volunteer_id)) if g.id in goal_ids
        }
        return monthly_summary(history, goals_by_id, year=year, month=month, volunteer_id=volunteer_id)

    def get_personal_analytics(
        self, volunteer_id: str, date_range: DateRange | None = None
    ) -> PersonalAnalytics | None:
        volunteer = self._find_volunteer(volunteer_id)
        if volunteer is None:
            return None
        today = self._today()
        goals = self._goals_created_in(date_range or self.default_range(), volunteer_id)
        history = self._history.find_many(
            HistoryFilter(volunteer_id=volunteer_id, week_start_from=today - timedelta(weeks=TREND_WEEKS), week_start_to=today)
        )
        return personal_analytics(volunteer, goals, history, today)

    def get_volunteer_performance(self) -> list[VolunteerPerformance]:
        return volunteer_performance(self._volunteers.find_many(), self._goals.find_many(GoalFilter()))

    def get_history_summary(self) -> HistorySummary:
        history = self._history.find_many(HistoryFilter())
        goals_by_id = {g.id: g for g in self._goals.find_many(GoalFilter())}
        volunteers_by_id = {v.id: v for v in self._volunteers.find_many()}
        logger.debug("history summary entries={} goals={}", len(history), len(goals_by_id))
        return history_summary(history, goals_by_id, volunteers_by_id, self._today())

    def get_volunteer_weekly_history(
        self,
        volunteer_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> VolunteerWeeklyHistory | None:
        """Snapshot weeks newest first; defaults to six months back through the end of this week."""
        volunteer = self._find_volunteer(volunteer_id)
        if volunteer is None:
            return None
        today = self._today()
        start = start or week_start_for(months_before(today, WEEKLY_HISTORY_MONTHS))
        end = end or week_start_for(today) + timedelta(days=6)
        date_range = DateRange(start=start, end=end)
        history = self._history.find_many(
            HistoryFilter(volunteer_id=volunteer_id, week_start_from=date_range.start, week_start_to=date_range.end)
        )
        goal_ids = {entry.goal_id for entry in history}
        goals_by_id = {
            g.id: g for g in self._goals.find_many(GoalFilter(volunteer_id=volunteer_id)) if g.id in goal_ids
        }
        return volunteer_weekly_history(history, goals_by_id, volunteer)
