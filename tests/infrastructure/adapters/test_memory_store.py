from datetime import UTC, datetime

import pytest

from cadence.domain.models import ItemScheduleState, ScopeCounters
from cadence.infrastructure.adapters.memory_store import InMemoryScheduleRepository

NOW = datetime(2024, 3, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_upsert_is_keyed_by_scope_and_id():
    repo = InMemoryScheduleRepository()
    state = ItemScheduleState.new("a", "bio", NOW)
    await repo.save_schedules("bio", [state])
    await repo.save_schedules("bio", [state])

    assert len(repo.schedules) == 1
    assert (await repo.load_schedules("bio", ["a"]))["a"] is state
    assert (await repo.load_schedules("global", ["a"]))["a"] is state
    assert (await repo.load_schedules("chem", ["a"]))["a"].project_scope == "chem"


@pytest.mark.asyncio
async def test_counters_are_copied():
    repo = InMemoryScheduleRepository()
    counters = ScopeCounters(1, 1)
    await repo.save_daily_counters("bio", counters)
    counters.new_items_graded = 9

    assert await repo.load_daily_counters("bio") == ScopeCounters(1, 1)
    assert await repo.load_daily_counters("chem") == ScopeCounters()
