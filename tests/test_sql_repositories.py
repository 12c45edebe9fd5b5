from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import select

from volunteer_goals.core.errors import ValidationError
from volunteer_goals.core.types import GoalFilter, GoalStatus, HistoryFilter, ProgressSnapshot
from volunteer_goals.db.models import ActivityLog
from volunteer_goals.db.repositories.activity_repo import SqlActivityLog
from volunteer_goals.db.repositories.goals_repo import SqlGoalStore, create_goal
from volunteer_goals.db.repositories.history_repo import SqlProgressHistoryStore
from volunteer_goals.db.repositories.lease_repo import acquire_lease, current_owner, release_lease
from volunteer_goals.db.repositories.volunteers_repo import SqlVolunteerStore, create_volunteer
from volunteer_goals.db.session import make_engine, make_session_factory

NOW = datetime(2024, 1, 17, 10, 0, tzinfo=timezone.utc)


def _seed(session_factory, **goal_fields) -> str:
    with session_factory() as session:
        volunteer = create_volunteer(session, first_name="Ann", last_name="Lee", email="Ann@Example.org")
        goal = create_goal(
            session,
            title="Sort donations",
            volunteer_id=volunteer.id,
            due_date=goal_fields.pop("due_date", date(2024, 1, 31)),
            created_at=goal_fields.pop("created_at", NOW),
            **goal_fields,
        )
        return goal.id


def _snapshot(goal_id: str, week_start: date, progress: int) -> ProgressSnapshot:
    return ProgressSnapshot(
        goal_id=goal_id,
        volunteer_id="v1",
        title="Sort donations",
        progress=progress,
        status=GoalStatus.IN_PROGRESS,
        week_start=week_start,
        week_end=week_start + timedelta(days=6),
    )


def test_goal_round_trips_with_utc_timestamps_and_tags(session_factory) -> None:
    goal_id = _seed(session_factory, tags=["food", "weekend"], priority="high", status="in_progress", progress=20)

    goal = SqlGoalStore(session_factory).get(goal_id)

    assert goal.status == GoalStatus.IN_PROGRESS
    assert goal.priority.value == "High"
    assert goal.tags == frozenset({"food", "weekend"})
    assert goal.created_at == NOW
    assert goal.created_at.tzinfo is not None
    assert goal.version == 1


def test_find_many_applies_status_due_and_window_filters(session_factory) -> None:
    store = SqlGoalStore(session_factory)
    lapsed = _seed(session_factory, due_date=date(2024, 1, 10))
    with session_factory() as session:
        volunteer_id = store.get(lapsed).volunteer_id
        done = create_goal(
            session, title="Done", volunteer_id=volunteer_id, due_date=date(2024, 1, 1), status="completed", progress=100
        ).id
        open_ended = create_goal(
            session, title="Open", volunteer_id=volunteer_id, due_date=date(2024, 2, 1), week_start=date(2024, 1, 15)
        ).id
        stale_window = create_goal(
            session,
            title="Old week",
            volunteer_id=volunteer_id,
            due_date=date(2024, 2, 1),
            week_start=date(2024, 1, 1),
            week_end=date(2024, 1, 7),
        ).id

    overdue_candidates = store.find_many(
        GoalFilter(statuses=(GoalStatus.PENDING, GoalStatus.IN_PROGRESS), due_on_or_before=date(2024, 1, 17))
    )
    weekly = store.find_many(GoalFilter(exclude_statuses=(GoalStatus.COMPLETED,), window_contains=date(2024, 1, 17)))

    assert [g.id for g in overdue_candidates] == [lapsed]
    assert {g.id for g in weekly} == {lapsed, open_ended}
    assert done not in {g.id for g in weekly}
    assert stale_window not in {g.id for g in weekly}


def test_update_status_is_conditional_on_version(session_factory) -> None:
    goal_id = _seed(session_factory)
    store = SqlGoalStore(session_factory)

    assert store.update_status(goal_id, GoalStatus.OVERDUE, NOW, expected_version=1) is True
    assert store.update_status(goal_id, GoalStatus.IN_PROGRESS, NOW, expected_version=1) is False

    goal = store.get(goal_id)
    assert goal.status == GoalStatus.OVERDUE
    assert goal.version == 2


def test_completed_goal_cannot_be_moved(session_factory) -> None:
    goal_id = _seed(session_factory, status="completed", progress=100)
    store = SqlGoalStore(session_factory)

    assert store.update_status(goal_id, GoalStatus.OVERDUE, NOW) is False
    assert store.get(goal_id).status == GoalStatus.COMPLETED


def test_update_progress_moves_status_and_appends_note(session_factory) -> None:
    goal_id = _seed(session_factory)
    store = SqlGoalStore(session_factory)

    started = store.update_progress(goal_id, 40, NOW, note="first shift")
    finished = store.update_progress(goal_id, 100, NOW + timedelta(days=1))

    assert started.status == GoalStatus.IN_PROGRESS
    assert started.notes.endswith("first shift")
    assert finished.status == GoalStatus.COMPLETED
    assert finished.version == 3
    with pytest.raises(ValidationError):
        store.update_progress(goal_id, 101)
    assert store.update_progress("missing", 10) is None


def test_history_insert_is_conditional(session_factory) -> None:
    goal_id = _seed(session_factory)
    store = SqlProgressHistoryStore(session_factory)
    week = date(2024, 1, 14)

    assert store.insert_if_absent(goal_id, week, _snapshot(goal_id, week, 40)) is True
    assert store.insert_if_absent(goal_id, week, _snapshot(goal_id, week, 90)) is False
    assert store.insert_if_absent(goal_id, week + timedelta(days=7), _snapshot(goal_id, week + timedelta(days=7), 90))

    rows = store.find_many(HistoryFilter(goal_id=goal_id))
    assert [(r.week_start, r.progress) for r in rows] == [(week, 40), (week + timedelta(days=7), 90)]
    assert store.find_many(HistoryFilter(week_start_from=week + timedelta(days=1))) == rows[1:]


def test_volunteer_stats_and_activity(session_factory) -> None:
    _seed(session_factory)
    volunteers = SqlVolunteerStore(session_factory)
    volunteer = volunteers.find_many()[0]

    volunteers.update_stats(volunteer.id, goals_count=3, completion_rate=67)
    SqlActivityLog(session_factory).record(
        actor="system",
        action="MARK_GOAL_OVERDUE",
        resource="goal",
        resource_id="g1",
        details={"asOf": NOW},
    )

    refreshed = volunteers.find_many()[0]
    assert refreshed.email == "ann@example.org"
    assert (refreshed.goals_count, refreshed.completion_rate) == (3, 67)
    with session_factory() as session:
        logged = session.scalars(select(ActivityLog)).all()
    assert [row.action for row in logged] == ["MARK_GOAL_OVERDUE"]
    assert "2024-01-17" in logged[0].details_json


def test_lease_blocks_second_owner_until_released_or_expired(session_factory) -> None:
    with session_factory() as session:
        assert acquire_lease(session, "weekly_goals", "a", NOW, ttl_sec=60) is True
    with session_factory() as session:
        assert acquire_lease(session, "weekly_goals", "b", NOW + timedelta(seconds=10), ttl_sec=60) is False
        assert current_owner(session, "weekly_goals") == "a"
        assert acquire_lease(session, "overdue_goals", "b", NOW, ttl_sec=60) is True
    with session_factory() as session:
        assert acquire_lease(session, "weekly_goals", "c", NOW + timedelta(seconds=61), ttl_sec=60) is True
    with session_factory() as session:
        assert release_lease(session, "weekly_goals", "a") is False
        assert release_lease(session, "weekly_goals", "c") is True
        assert current_owner(session, "weekly_goals") is None


def test_migrations_build_the_schema_the_repositories_use(tmp_path) -> None:
    root = Path(__file__).resolve().parents[1]
    url = f"sqlite+pysqlite:///{(tmp_path / 'migrated.db').as_posix()}"
    cfg = Config(str(root / "alembic.ini"))
    cfg.set_main_option("script_location", str(root / "volunteer_goals" / "db" / "migrations"))
    cfg.set_main_option("sqlalchemy.url", url)

    command.upgrade(cfg, "head")

    engine = make_engine(url)
    try:
        session_factory = make_session_factory(engine)
        goal_id = _seed(session_factory)
        history = SqlProgressHistoryStore(session_factory)
        week = date(2024, 1, 14)
        assert history.insert_if_absent(goal_id, week, _snapshot(goal_id, week, 10)) is True
        assert history.insert_if_absent(goal_id, week, _snapshot(goal_id, week, 20)) is False
        with session_factory() as session:
            assert acquire_lease(session, "weekly_goals", "a", NOW, ttl_sec=60) is True
    finally:
        engine.dispose()


def test_create_goal_rejects_inverted_week_window(session_factory) -> None:
    with session_factory() as session:
        volunteer = create_volunteer(session, first_name="Ann", last_name="Lee", email="ann@example.org")
        with pytest.raises(ValidationError) as exc_info:
            create_goal(
                session,
                title="Backwards",
                volunteer_id=volunteer.id,
                due_date=date(2024, 1, 31),
                week_start=date(2024, 1, 21),
                week_end=date(2024, 1, 14),
            )

    assert exc_info.value.field == "week_end"
