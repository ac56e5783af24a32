from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from cadence.application.config import SchedulerParams
from cadence.application.scheduler import next_state
from cadence.application.stats.metrics_calculator import SessionStatsCalculator
from cadence.application.stats.service import DeckStatsService
from cadence.domain.errors import PersistenceError
from cadence.domain.models import Grade, Phase, ScopeCounters, ScopeLimits
from cadence.infrastructure.adapters.memory_store import InMemoryScheduleRepository


@pytest.fixture
def calculator():
    return SessionStatsCalculator()


@pytest.fixture
def items(make_item, now):
    return {
        "n1": make_item("n1"),
        "n2": make_item("n2"),
        "n3": make_item("n3", is_suspended=True),
        "l1": make_item("l1", phase=Phase.LEARNING, due_at=now),
        "l2": make_item("l2", phase=Phase.LEARNING, due_at=now + timedelta(minutes=30)),
        "r1": make_item("r1", phase=Phase.REVIEW, due_at=now - timedelta(days=1)),
        "r2": make_item("r2", phase=Phase.REVIEW, due_at=now + timedelta(days=1)),
        "x": make_item("x", scope="chem"),
    }


def test_study_stats_counts(calculator, items, session, limits, now):
    stats = calculator.study_stats(items, session, limits, now)
    assert stats.available_new == 2
    assert stats.due_learning == 1
    assert stats.due_review == 1
    assert stats.due_total == 2
    assert stats.total_items == 7
    assert stats.total_learning == 2


def test_study_stats_applies_limits(calculator, items, session, now):
    limits = ScopeLimits(scope="bio", new_items_per_day=3, max_reviews_per_day=5)
    session.counters["bio"] = ScopeCounters(new_items_graded=2, reviews_completed=5)
    stats = calculator.study_stats(items, session, limits, now)
    assert stats.available_new == 1
    assert stats.due_review == 0


def test_summary_reports_waiting_learning(calculator, make_item, session, params, limits, now):
    due = now + timedelta(minutes=12)
    items = {"l": make_item("l", phase=Phase.LEARNING, due_at=due)}
    summary = calculator.summary(items, session, params, limits, now)
    assert not summary.is_complete
    assert summary.available_items == 0
    assert summary.next_poll_at == due


def test_daily_stats(calculator, make_item, session, params, now):
    item = make_item("a", phase=Phase.REVIEW, interval_days=3, due_at=now)
    for grade in (Grade.GOOD, Grade.AGAIN, Grade.EASY, Grade.HARD):
        updated = next_state(item, grade, params, now)
        session.record_review(item, updated, grade, now)

    daily = calculator.daily_stats(session)
    assert daily.reviews_completed == 4
    assert daily.new_items_graded == 0
    assert daily.lapses == 1
    assert daily.estimated_seconds == 120
    assert daily.accuracy == pytest.approx(50.0)


def test_daily_stats_empty(calculator, session):
    daily = calculator.daily_stats(session)
    assert daily.accuracy == 0.0
    assert daily.estimated_seconds == 0


def test_scope_overview(calculator, items, now):
    overview = calculator.scope_overview(items, now)
    assert overview["bio"].new == 2
    assert overview["bio"].learning == 2
    assert overview["bio"].due == 2
    assert overview["bio"].suspended == ["n3"]
    assert overview["chem"].new == 1


def test_leeches(calculator, make_item):
    items = {"a": make_item("a", is_leech=True), "b": make_item("b")}
    assert calculator.leeches(items) == ["a"]


@pytest.mark.asyncio
async def test_deck_stats_service_report(make_item, now):
    repo = InMemoryScheduleRepository()
    await repo.save_schedules("bio", [make_item("r", phase=Phase.REVIEW, due_at=now)])
    repo.counters["bio"] = ScopeCounters(reviews_completed=1)

    service = DeckStatsService(repo, MagicMock())
    report = await service.report(["r", "n"], ScopeLimits(scope="bio"), now, date(2024, 3, 1))

    assert report.scope == "bio"
    assert report.study.due_review == 1
    assert report.study.available_new == 1
    assert report.leeches == []


@pytest.mark.asyncio
async def test_global_report_counts_progress_of_every_project(make_item, now):
    repo = InMemoryScheduleRepository()
    await repo.save_schedules("bio", [make_item("a"), make_item("b")])
    repo.counters["bio"] = ScopeCounters(new_items_graded=2)

    service = DeckStatsService(repo, MagicMock())
    report = await service.report(
        ["a", "b"], ScopeLimits(new_items_per_day=2), now, date(2024, 3, 1)
    )

    assert report.study.available_new == 0


@pytest.mark.asyncio
async def test_report_survives_unreachable_repository(now):
    repo = InMemoryScheduleRepository()
    repo.load_schedules = MagicMock(side_effect=PersistenceError("offline"))

    service = DeckStatsService(repo, MagicMock(), params=SchedulerParams(starting_ease=2.0))
    report = await service.report(["a", "b"], ScopeLimits(scope="bio"), now, date(2024, 3, 1))

    assert report.study.total_items == 2
    assert report.study.available_new == 2
