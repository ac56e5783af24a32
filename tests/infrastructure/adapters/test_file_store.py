import json
from datetime import UTC, date, datetime, timedelta

import pytest

from cadence.domain.models import ItemScheduleState, Phase, ScopeCounters
from cadence.infrastructure.adapters.file_store import FileScheduleRepository
from cadence.infrastructure.adapters.local_fallback import JsonFallbackStore

NOW = datetime(2024, 3, 1, 12, tzinfo=UTC)


@pytest.fixture
def repo(tmp_path):
    return FileScheduleRepository(tmp_path / "deck.schedules.json")


@pytest.mark.asyncio
async def test_missing_file_yields_new_items(repo):
    states = await repo.load_schedules("bio", ["a"])
    assert states["a"].phase == Phase.NEW
    assert states["a"].project_scope == "bio"


@pytest.mark.asyncio
async def test_saved_states_are_loaded_back(repo):
    state = ItemScheduleState(
        id="a",
        project_scope="bio",
        phase=Phase.RELEARNING,
        interval_days=3,
        ease_factor=2.1,
        due_at=NOW + timedelta(minutes=10),
        last_graded_at=NOW,
        total_repetitions=7,
        lapse_count=2,
        learning_step_index=1,
        group_key="n1",
    )
    assert await repo.save_schedules("bio", [state]) is True

    loaded = await repo.load_schedules("bio", ["a"])
    assert loaded["a"] == state


@pytest.mark.asyncio
async def test_global_scope_reads_every_bucket(repo):
    await repo.save_schedules("chem", [ItemScheduleState.new("c", "chem", NOW)])
    loaded = await repo.load_schedules("global", ["c"])
    assert loaded["c"].project_scope == "chem"


@pytest.mark.asyncio
async def test_malformed_row_is_replaced(repo):
    repo.path.write_text(
        json.dumps({"schedules": {"bio": {"a": {"card_id": "a", "state": "weird"}}}})
    )
    loaded = await repo.load_schedules("bio", ["a"])
    assert loaded["a"].phase == Phase.NEW


@pytest.mark.asyncio
async def test_counters_only_apply_today(repo):
    assert await repo.save_daily_counters("bio", ScopeCounters(2, 5)) is True
    assert await repo.load_daily_counters("bio") == ScopeCounters(2, 5)

    doc = json.loads(repo.path.read_text())
    doc["counters"]["bio"]["study_date"] = "2000-01-01"
    repo.path.write_text(json.dumps(doc))
    assert await repo.load_daily_counters("bio") == ScopeCounters()


@pytest.mark.asyncio
async def test_unwritable_location_reports_failure(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    repo = FileScheduleRepository(blocker / "sub" / "deck.json")
    assert await repo.save_daily_counters("bio", ScopeCounters(1, 0)) is False


def test_fallback_store_is_date_keyed(tmp_path):
    store = JsonFallbackStore(tmp_path / "fallback.json")
    day = date(2024, 3, 1)
    assert store.load(day) is None

    store.save(day, ScopeCounters(4, 2))
    assert json.loads(store.path.read_text()) == {
        "date": "2024-03-01",
        "newItemsGraded": 4,
        "reviewsCompleted": 2,
    }
    assert store.load(day) == ScopeCounters(4, 2)
    assert store.load(date(2024, 3, 2)) is None

    store.clear(date(2024, 3, 2))
    assert store.path.exists()
    store.clear(day)
    assert not store.path.exists()


def test_fallback_store_ignores_garbage(tmp_path):
    store = JsonFallbackStore(tmp_path / "fallback.json")
    store.path.write_text("{not json")
    assert store.load(date(2024, 3, 1)) is None
