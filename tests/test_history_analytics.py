from datetime import date, datetime, timedelta, timezone

from conftest import InMemoryGoalStore, InMemoryProgressHistoryStore, InMemoryVolunteerStore, make_goal, make_volunteer

from volunteer_goals.core.analytics import AnalyticsService, months_before
from volunteer_goals.core.history_analytics import (
    history_summary,
    improvement_trend,
    monthly_summary,
    streak_count,
    volunteer_trends,
    volunteer_weekly_history,
)
from volunteer_goals.core.types import GoalPriority, GoalStatus, HistoryRecord, ProgressSnapshot


def _entry(goal_id: str, week_start: date, progress: int, status: GoalStatus, volunteer_id: str = "v1") -> HistoryRecord:
    return HistoryRecord(
        id=f"{goal_id}-{week_start.isoformat()}",
        goal_id=goal_id,
        volunteer_id=volunteer_id,
        title=goal_id,
        progress=progress,
        status=status,
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_improvement_trend() -> None:
    assert improvement_trend([50, 50, 50]) == "stable"
    assert improvement_trend([20, 30, 60, 70]) == "improving"
    assert improvement_trend([80, 80, 40, 50]) == "declining"
    assert improvement_trend([0, 50, 50, 50, 54, 56]) == "stable"


def test_volunteer_trends_per_week_and_best_week() -> None:
    w1, w2 = date(2024, 1, 7), date(2024, 1, 14)
    history = [
        _entry("g1", w1, 40, GoalStatus.IN_PROGRESS),
        _entry("g2", w1, 100, GoalStatus.COMPLETED),
        _entry("g1", w2, 100, GoalStatus.COMPLETED),
        _entry("g2", w2, 100, GoalStatus.COMPLETED),
    ]

    trends = volunteer_trends(history, make_volunteer("v1"))

    assert [(t.week_start, t.total_goals, t.completed_goals, t.completion_rate) for t in trends.weekly_trends] == [
        (w1, 2, 1, 50),
        (w2, 2, 2, 100),
    ]
    assert trends.weekly_trends[0].average_progress == 70
    assert trends.overall_stats.total_entries == 4
    assert trends.overall_stats.completion_rate == 75
    assert trends.overall_stats.best_week.week_start == w2
    assert trends.overall_stats.improvement_trend == "stable"
    assert trends.volunteer_name == "Ann Lee v1"


def test_volunteer_trends_without_history() -> None:
    trends = volunteer_trends([], make_volunteer("v1"))

    assert trends.weekly_trends == []
    assert trends.overall_stats.completion_rate == 0
    assert trends.overall_stats.best_week is None


def test_monthly_summary_bands_and_categories() -> None:
    g1 = make_goal(id="g1", category="Kitchen")
    g2 = make_goal(id="g2", category="Outreach")
    g3 = make_goal(id="g3", category="")
    history = [
        _entry("g1", date(2024, 1, 7), 10, GoalStatus.PENDING),
        _entry("g1", date(2024, 1, 14), 100, GoalStatus.COMPLETED),
        _entry("g2", date(2024, 1, 14), 55, GoalStatus.IN_PROGRESS),
        _entry("g3", date(2024, 1, 21), 81, GoalStatus.IN_PROGRESS),
    ]

    summary = monthly_summary(history, {g.id: g for g in (g1, g2, g3)}, year=2024, month=1)

    assert summary.total_entries == 4
    assert summary.completed_goals == 1
    assert summary.completion_rate == 25
    assert summary.average_progress == 62
    assert summary.categories_worked == ["Kitchen", "Outreach"]
    assert [(c.category, c.entries, c.completion_rate) for c in summary.top_categories] == [
        ("Kitchen", 2, 50),
        ("Outreach", 1, 0),
    ]
    assert [(w.week_start, w.entries) for w in summary.weekly_breakdown] == [
        (date(2024, 1, 7), 1),
        (date(2024, 1, 14), 2),
        (date(2024, 1, 21), 1),
    ]
    assert [(b.range, b.count, b.percentage) for b in summary.progress_distribution] == [
        ("0-20%", 1, 25),
        ("21-40%", 0, 0),
        ("41-60%", 1, 25),
        ("61-80%", 0, 0),
        ("81-100%", 2, 50),
    ]


def test_service_history_views() -> None:
    today = date(2024, 1, 20)
    history = InMemoryProgressHistoryStore()
    for week_start, progress, status in (
        (date(2023, 10, 1), 10, GoalStatus.PENDING),
        (date(2024, 1, 7), 50, GoalStatus.IN_PROGRESS),
        (date(2024, 1, 14), 100, GoalStatus.COMPLETED),
    ):
        history.insert_if_absent(
            "g1",
            week_start,
            ProgressSnapshot(
                goal_id="g1",
                volunteer_id="v1",
                title="Sort donations",
                progress=progress,
                status=status,
                week_start=week_start,
                week_end=week_start + timedelta(days=6),
            ),
        )
    service = AnalyticsService(
        InMemoryGoalStore([make_goal(id="g1", category="Kitchen")]),
        InMemoryVolunteerStore([make_volunteer("v1")]),
        history,
        today=lambda: today,
    )

    trends = service.get_volunteer_trends("v1")
    summary = service.get_monthly_summary(2024, 1, "v1")

    assert service.get_volunteer_trends("nobody") is None
    assert [t.week_start for t in trends.weekly_trends] == [date(2024, 1, 7), date(2024, 1, 14)]
    assert summary.total_entries == 2
    assert summary.categories_worked == ["Kitchen"]


def test_streak_counts_back_from_the_newest_week() -> None:
    history = [
        _entry("g1", date(2024, 1, 7), 100, GoalStatus.COMPLETED),
        _entry("g1", date(2024, 1, 14), 40, GoalStatus.IN_PROGRESS),
        _entry("g2", date(2024, 1, 21), 100, GoalStatus.COMPLETED),
        _entry("g3", date(2024, 1, 21), 10, GoalStatus.PENDING),
        _entry("g2", date(2024, 1, 28), 100, GoalStatus.COMPLETED),
    ]

    assert streak_count(history) == 2
    assert streak_count(history[:2]) == 0
    assert streak_count([]) == 0


def test_history_summary_across_volunteers() -> None:
    history = [
        _entry("g1", date(2023, 12, 31), 40, GoalStatus.IN_PROGRESS),
        _entry("g1", date(2024, 2, 18), 100, GoalStatus.COMPLETED),
        _entry("g2", date(2024, 2, 25), 60, GoalStatus.OVERDUE, volunteer_id="v2"),
        _entry("g3", date(2024, 2, 25), 20, GoalStatus.PENDING, volunteer_id="gone"),
    ]
    goals = {
        "g1": make_goal(id="g1", category="Kitchen"),
        "g2": make_goal(id="g2", volunteer_id="v2", category="Garden"),
    }
    volunteers = {v.id: v for v in (make_volunteer("v1"), make_volunteer("v2"))}

    summary = history_summary(history, goals, volunteers, date(2024, 3, 1))

    assert (summary.total_entries, summary.total_volunteers) == (4, 3)
    assert summary.overall_completion_rate == 25
    assert summary.average_progress == 55
    assert [(s.status, s.count, s.percentage) for s in summary.status_distribution] == [
        (GoalStatus.PENDING, 1, 25),
        (GoalStatus.IN_PROGRESS, 1, 25),
        (GoalStatus.COMPLETED, 1, 25),
        (GoalStatus.OVERDUE, 1, 25),
    ]
    assert [(c.category, c.entries, c.average_progress, c.completion_rate) for c in summary.category_performance] == [
        ("Kitchen", 2, 70, 50),
        ("Garden", 1, 60, 0),
    ]
    # only the last eight weeks
    assert [t.week_start for t in summary.weekly_trends] == [date(2024, 2, 18), date(2024, 2, 25)]
    assert [(p.volunteer_id, p.completion_rate, p.average_progress) for p in summary.top_performers] == [
        ("v1", 50, 70),
        ("v2", 0, 60),
    ]


def test_history_summary_without_snapshots() -> None:
    summary = history_summary([], {}, {}, date(2024, 3, 1))

    assert summary.total_entries == 0
    assert summary.overall_completion_rate == 0
    assert all(s.count == 0 and s.percentage == 0 for s in summary.status_distribution)
    assert summary.weekly_trends == []


def test_volunteer_weekly_history_newest_first() -> None:
    w1, w2 = date(2024, 1, 7), date(2024, 1, 14)
    history = [
        _entry("g1", w1, 40, GoalStatus.IN_PROGRESS),
        _entry("g2", w1, 100, GoalStatus.COMPLETED),
        _entry("g1", w2, 80, GoalStatus.IN_PROGRESS),
    ]
    goals = {"g1": make_goal(id="g1", category="Kitchen", priority=GoalPriority.HIGH)}

    weekly = volunteer_weekly_history(history, goals, make_volunteer("v1"))

    assert weekly.total_weeks == 2
    assert [(w.week_start, w.total_goals, w.completed_goals, w.average_progress, w.completion_rate) for w in weekly.weeks] == [
        (w2, 1, 0, 80, 0),
        (w1, 2, 1, 70, 50),
    ]
    assert [(g.goal_id, g.priority, g.category) for g in weekly.weeks[1].goals] == [
        ("g1", GoalPriority.HIGH, "Kitchen"),
        ("g2", None, "Uncategorized"),
    ]
    stats = weekly.overall_stats
    assert (stats.total_goals, stats.completed_goals, stats.average_progress, stats.average_completion_rate) == (
        3,
        1,
        75,
        25,
    )


def test_months_before_clamps_to_month_end() -> None:
    assert months_before(date(2024, 8, 31), 6) == date(2024, 2, 29)
    assert months_before(date(2024, 3, 15), 6) == date(2023, 9, 15)


def test_service_weekly_history_and_personal_analytics() -> None:
    today = date(2024, 1, 20)
    history = InMemoryProgressHistoryStore(
        [
            _entry("g9", date(2023, 7, 9), 10, GoalStatus.PENDING),
            _entry("g1", date(2023, 7, 16), 30, GoalStatus.IN_PROGRESS),
            _entry("g1", date(2024, 1, 7), 100, GoalStatus.COMPLETED),
            _entry("g2", date(2024, 1, 14), 100, GoalStatus.COMPLETED),
        ]
    )
    created = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)
    goals = InMemoryGoalStore(
        [
            make_goal(
                id="g1",
                status=GoalStatus.COMPLETED,
                progress=100,
                created_at=created,
                updated_at=datetime(2024, 1, 15, 18, 0, tzinfo=timezone.utc),
            ),
            make_goal(id="g2", status=GoalStatus.IN_PROGRESS, progress=50, created_at=created),
        ]
    )
    service = AnalyticsService(goals, InMemoryVolunteerStore([make_volunteer("v1")]), history, today=lambda: today)

    weekly = service.get_volunteer_weekly_history("v1")
    personal = service.get_personal_analytics("v1")

    assert service.get_volunteer_weekly_history("nobody") is None
    assert service.get_personal_analytics("nobody") is None
    # six months back, aligned to Sunday: 2023-07-16
    assert [w.week_start for w in weekly.weeks] == [date(2024, 1, 14), date(2024, 1, 7), date(2023, 7, 16)]
    assert personal.overall_completion_rate == 50
    assert personal.performance_score == 58
    assert personal.streak_count == 2
    assert [t.week_start for t in personal.weekly_trends] == [date(2024, 1, 7), date(2024, 1, 14)]
    assert [a.title for a in personal.achievements] == ["First Goal Completed", "Perfect Week"]
    assert {d.day: d.completed_goals for d in personal.productive_days}["Monday"] == 1
