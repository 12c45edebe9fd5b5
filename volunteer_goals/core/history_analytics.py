from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Mapping

from volunteer_goals.core.types import (
    GoalPriority,
    GoalRecord,
    GoalStatus,
    HistoryRecord,
    VolunteerRecord,
    completion_rate,
    divide_half_up,
)

TREND_MARGIN = 5
TOP_CATEGORY_LIMIT = 5
TOP_PERFORMER_LIMIT = 10
SUMMARY_TREND_WEEKS = 8
UNCATEGORIZED = "Uncategorized"
PROGRESS_RANGES = (
    ("0-20%", 0, 20),
    ("21-40%", 21, 40),
    ("41-60%", 41, 60),
    ("61-80%", 61, 80),
    ("81-100%", 81, 100),
)


@dataclass(slots=True)
class WeeklyHistoryTrend:
    week_start: date
    week_end: date
    total_goals: int
    completed_goals: int
    average_progress: int
    completion_rate: int


@dataclass(slots=True)
class BestWeek:
    week_start: date
    completion_rate: int


@dataclass(slots=True)
class TrendStats:
    total_entries: int
    average_progress: int
    completion_rate: int
    best_week: BestWeek | None
    improvement_trend: str


@dataclass(slots=True)
class VolunteerTrends:
    volunteer_id: str
    volunteer_name: str
    weekly_trends: list[WeeklyHistoryTrend]
    overall_stats: TrendStats


@dataclass(slots=True)
class WeekBreakdown:
    week_start: date
    week_end: date
    entries: int
    average_progress: int


@dataclass(slots=True)
class CategoryStat:
    category: str
    entries: int
    completion_rate: int


@dataclass(slots=True)
class ProgressBand:
    range: str
    count: int
    percentage: int


@dataclass(slots=True)
class MonthlySummary:
    year: int
    month: int
    volunteer_id: str | None
    total_entries: int
    completed_goals: int
    average_progress: int
    completion_rate: int
    categories_worked: list[str] = field(default_factory=list)
    weekly_breakdown: list[WeekBreakdown] = field(default_factory=list)
    top_categories: list[CategoryStat] = field(default_factory=list)
    progress_distribution: list[ProgressBand] = field(default_factory=list)


def _average_progress(entries: list[HistoryRecord]) -> int:
    return divide_half_up(sum(e.progress for e in entries), len(entries))


def _completed(entries: list[HistoryRecord]) -> int:
    return sum(1 for e in entries if e.status == GoalStatus.COMPLETED)


def _group_by_week(entries: list[HistoryRecord]) -> dict[date, list[HistoryRecord]]:
    weeks: dict[date, list[HistoryRecord]] = {}
    for entry in sorted(entries, key=lambda e: e.week_start):
        weeks.setdefault(entry.week_start, []).append(entry)
    return weeks


def improvement_trend(rates: list[int]) -> str:
    """Compare the last two weeks to the two before them."""
    if len(rates) < 4:
        return "stable"
    last_four = rates[-4:]
    earlier = (last_four[0] + last_four[1]) / 2
    later = (last_four[2] + last_four[3]) / 2
    if later > earlier + TREND_MARGIN:
        return "improving"
    if later < earlier - TREND_MARGIN:
        return "declining"
    return "stable"


def weekly_history_trends(history: list[HistoryRecord]) -> list[WeeklyHistoryTrend]:
    weekly: list[WeeklyHistoryTrend] = []
    for week_start, entries in _group_by_week(history).items():
        done = _completed(entries)
        weekly.append(
            WeeklyHistoryTrend(
                week_start=week_start,
                week_end=entries[0].week_end,
                total_goals=len(entries),
                completed_goals=done,
                average_progress=_average_progress(entries),
                completion_rate=completion_rate(done, len(entries)),
            )
        )
    return weekly


def streak_count(history: list[HistoryRecord]) -> int:
    """Consecutive snapshot weeks, newest first, that contain a completed goal."""
    streak = 0
    for _, entries in sorted(_group_by_week(history).items(), reverse=True):
        if not _completed(entries):
            break
        streak += 1
    return streak


def volunteer_trends(history: list[HistoryRecord], volunteer: VolunteerRecord) -> VolunteerTrends:
    weekly = weekly_history_trends(history)

    best = None
    for trend in weekly:
        if best is None or trend.completion_rate > best.completion_rate:
            best = trend

    return VolunteerTrends(
        volunteer_id=volunteer.id,
        volunteer_name=volunteer.name,
        weekly_trends=weekly,
        overall_stats=TrendStats(
            total_entries=len(history),
            average_progress=_average_progress(history),
            completion_rate=completion_rate(_completed(history), len(history)),
            best_week=BestWeek(week_start=best.week_start, completion_rate=best.completion_rate) if best else None,
            improvement_trend=improvement_trend([t.completion_rate for t in weekly]),
        ),
    )


def monthly_summary(
    history: list[HistoryRecord],
    goals_by_id: Mapping[str, GoalRecord],
    *,
    year: int,
    month: int,
    volunteer_id: str | None = None,
) -> MonthlySummary:
    total = len(history)
    done = _completed(history)

    categories: dict[str, list[HistoryRecord]] = {}
    for entry in history:
        goal = goals_by_id.get(entry.goal_id)
        if goal is not None and goal.category:
            categories.setdefault(goal.category, []).append(entry)

    top = sorted(
        (
            CategoryStat(category=name, entries=len(rows), completion_rate=completion_rate(_completed(rows), len(rows)))
            for name, rows in categories.items()
        ),
        key=lambda c: (-c.entries, c.category),
    )[:TOP_CATEGORY_LIMIT]

    bands = Counter()
    for entry in history:
        for label, low, high in PROGRESS_RANGES:
            if low <= entry.progress <= high:
                bands[label] += 1
                break

    return MonthlySummary(
        year=year,
        month=month,
        volunteer_id=volunteer_id,
        total_entries=total,
        completed_goals=done,
        average_progress=_average_progress(history),
        completion_rate=completion_rate(done, total),
        categories_worked=sorted(categories),
        weekly_breakdown=[
            WeekBreakdown(
                week_start=week_start,
                week_end=entries[0].week_end,
                entries=len(entries),
                average_progress=_average_progress(entries),
            )
            for week_start, entries in _group_by_week(history).items()
        ],
        top_categories=top,
        progress_distribution=[
            ProgressBand(range=label, count=bands[label], percentage=completion_rate(bands[label], total))
            for label, _, _ in PROGRESS_RANGES
        ],
    )


@dataclass(slots=True)
class StatusShare:
    status: GoalStatus
    count: int
    percentage: int


@dataclass(slots=True)
class CategoryPerformance:
    category: str
    entries: int
    average_progress: int
    completion_rate: int


@dataclass(slots=True)
class TopPerformer:
    volunteer_id: str
    volunteer_name: str
    completion_rate: int
    average_progress: int
    total_entries: int


@dataclass(slots=True)
class HistorySummary:
    total_entries: int
    total_volunteers: int
    overall_completion_rate: int
    average_progress: int
    status_distribution: list[StatusShare] = field(default_factory=list)
    category_performance: list[CategoryPerformance] = field(default_factory=list)
    weekly_trends: list[WeeklyHistoryTrend] = field(default_factory=list)
    top_performers: list[TopPerformer] = field(default_factory=list)


def history_summary(
    history: list[HistoryRecord],
    goals_by_id: Mapping[str, GoalRecord],
    volunteers_by_id: Mapping[str, VolunteerRecord],
    today: date,
) -> HistorySummary:
    """
    System-wide view over every snapshot ever taken.

    Categories come from the live goal, so snapshots of deleted goals are
    left out of ``category_performance``. Volunteers that no longer exist
    are likewise left out of ``top_performers``. Weekly trends cover only
    the last eight weeks.
    """
    total = len(history)
    statuses = Counter(e.status for e in history)

    categories: dict[str, list[HistoryRecord]] = {}
    for entry in history:
        goal = goals_by_id.get(entry.goal_id)
        if goal is not None and goal.category:
            categories.setdefault(goal.category, []).append(entry)

    by_volunteer: dict[str, list[HistoryRecord]] = {}
    for entry in history:
        if entry.volunteer_id in volunteers_by_id:
            by_volunteer.setdefault(entry.volunteer_id, []).append(entry)

    performers = [
        TopPerformer(
            volunteer_id=volunteer_id,
            volunteer_name=volunteers_by_id[volunteer_id].name,
            completion_rate=completion_rate(_completed(rows), len(rows)),
            average_progress=_average_progress(rows),
            total_entries=len(rows),
        )
        for volunteer_id, rows in by_volunteer.items()
    ]
    performers.sort(key=lambda p: (-p.completion_rate, -p.average_progress, p.volunteer_name))

    recent_from = today - timedelta(weeks=SUMMARY_TREND_WEEKS)
    return HistorySummary(
        total_entries=total,
        total_volunteers=len({e.volunteer_id for e in history}),
        overall_completion_rate=completion_rate(_completed(history), total),
        average_progress=_average_progress(history),
        status_distribution=[
            StatusShare(status=status, count=statuses[status], percentage=completion_rate(statuses[status], total))
            for status in GoalStatus
        ],
        category_performance=sorted(
            (
                CategoryPerformance(
                    category=name,
                    entries=len(rows),
                    average_progress=_average_progress(rows),
                    completion_rate=completion_rate(_completed(rows), len(rows)),
                )
                for name, rows in categories.items()
            ),
            key=lambda c: (-c.entries, c.category),
        ),
        weekly_trends=weekly_history_trends([e for e in history if e.week_start >= recent_from]),
        top_performers=performers[:TOP_PERFORMER_LIMIT],
    )


@dataclass(slots=True)
class HistoricalGoal:
    goal_id: str
    title: str
    status: GoalStatus
    progress: int
    priority: GoalPriority | None
    category: str
    notes: str


@dataclass(slots=True)
class HistoricalWeek:
    week_start: date
    week_end: date
    total_goals: int
    completed_goals: int
    average_progress: int
    completion_rate: int
    goals: list[HistoricalGoal] = field(default_factory=list)


@dataclass(slots=True)
class WeeklyHistoryStats:
    total_goals: int
    completed_goals: int
    average_progress: int
    average_completion_rate: int


@dataclass(slots=True)
class VolunteerWeeklyHistory:
    volunteer_id: str
    volunteer_name: str
    total_weeks: int
    overall_stats: WeeklyHistoryStats
    weeks: list[HistoricalWeek] = field(default_factory=list)


def volunteer_weekly_history(
    history: list[HistoryRecord],
    goals_by_id: Mapping[str, GoalRecord],
    volunteer: VolunteerRecord,
) -> VolunteerWeeklyHistory:
    weeks: list[HistoricalWeek] = []
    for week_start, entries in sorted(_group_by_week(history).items(), reverse=True):
        goals = []
        for entry in entries:
            goal = goals_by_id.get(entry.goal_id)
            goals.append(
                HistoricalGoal(
                    goal_id=entry.goal_id,
                    title=entry.title,
                    status=entry.status,
                    progress=entry.progress,
                    priority=goal.priority if goal is not None else None,
                    category=(goal.category if goal is not None else "") or UNCATEGORIZED,
                    notes=entry.notes,
                )
            )
        done = _completed(entries)
        weeks.append(
            HistoricalWeek(
                week_start=week_start,
                week_end=entries[0].week_end,
                total_goals=len(entries),
                completed_goals=done,
                average_progress=_average_progress(entries),
                completion_rate=completion_rate(done, len(entries)),
                goals=goals,
            )
        )

    # averages are taken over weeks, not over individual snapshots
    return VolunteerWeeklyHistory(
        volunteer_id=volunteer.id,
        volunteer_name=volunteer.name,
        total_weeks=len(weeks),
        overall_stats=WeeklyHistoryStats(
            total_goals=sum(w.total_goals for w in weeks),
            completed_goals=sum(w.completed_goals for w in weeks),
            average_progress=divide_half_up(sum(w.average_progress for w in weeks), len(weeks)),
            average_completion_rate=divide_half_up(sum(w.completion_rate for w in weeks), len(weeks)),
        ),
        weeks=weeks,
    )
