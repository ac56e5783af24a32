import asyncio
from unittest.mock import AsyncMock

import pytest

from cadence.application.save_queue import DebouncedSaver
from cadence.domain.errors import PersistenceError
from cadence.domain.models import ScopeCounters
from cadence.infrastructure.adapters.memory_store import InMemoryScheduleRepository


@pytest.fixture
def repo():
    mock = AsyncMock()
    mock.save_schedules.return_value = True
    mock.save_daily_counters.return_value = True
    return mock


@pytest.mark.asyncio
async def test_writes_are_coalesced(repo, make_item):
    saver = DebouncedSaver(repo, delay=0.05)
    for i in range(5):
        saver.schedule_states("bio", [make_item("a", total_repetitions=i)])
    saver.schedule_counters("bio", ScopeCounters(1, 0))
    saver.schedule_counters("bio", ScopeCounters(2, 0))
    assert saver.pending_count == 2

    await asyncio.sleep(0.2)

    repo.save_schedules.assert_awaited_once()
    scope, states = repo.save_schedules.await_args.args
    assert scope == "bio"
    assert [s.total_repetitions for s in states] == [4]
    repo.save_daily_counters.assert_awaited_once_with("bio", ScopeCounters(2, 0))
    assert saver.pending_count == 0


@pytest.mark.asyncio
async def test_failed_writes_stay_queued(repo, make_item):
    repo.save_schedules.side_effect = PersistenceError("offline")
    saver = DebouncedSaver(repo, delay=10)
    saver.schedule_states("bio", [make_item("a")])

    assert await saver.flush() is False
    assert saver.pending_count == 1

    repo.save_schedules.side_effect = None
    assert await saver.close() is True
    assert saver.pending_count == 0


@pytest.mark.asyncio
async def test_rejected_write_is_retried(repo):
    repo.save_daily_counters.return_value = False
    saver = DebouncedSaver(repo, delay=10)
    saver.schedule_counters("bio", ScopeCounters(1, 1))
    assert await saver.flush() is False
    assert saver.pending_count == 1
    await saver.close()


@pytest.mark.asyncio
async def test_newer_pending_state_wins_over_requeued(repo, make_item):
    gate = asyncio.Event()

    async def slow_fail(scope, states):
        await gate.wait()
        raise PersistenceError("offline")

    repo.save_schedules.side_effect = slow_fail
    saver = DebouncedSaver(repo, delay=10)
    saver.schedule_states("bio", [make_item("a", total_repetitions=1)])

    flushing = asyncio.create_task(saver.flush())
    await asyncio.sleep(0)
    saver.schedule_states("bio", [make_item("a", total_repetitions=2)])
    gate.set()
    await flushing

    assert saver._pending_states[("bio", "a")].total_repetitions == 2
    await saver.close()


@pytest.mark.asyncio
async def test_timeout_is_treated_as_failure(repo):
    async def hang(scope, counters):
        await asyncio.sleep(10)

    repo.save_daily_counters.side_effect = hang
    saver = DebouncedSaver(repo, delay=10, timeout=0.01)
    saver.schedule_counters("bio", ScopeCounters(1, 0))
    assert await saver.flush() is False
    await saver.close()


def test_without_event_loop_data_only_queues(make_item):
    repo = InMemoryScheduleRepository()
    saver = DebouncedSaver(repo)
    saver.schedule_states("bio", [make_item("a")])
    assert saver.pending_count == 1
    assert repo.schedules == {}

    assert asyncio.run(saver.close()) is True
    assert ("bio", "a") in repo.schedules


@pytest.mark.asyncio
async def test_slow_flush_is_not_cancelled_by_new_writes(make_item):
    saved = []

    class SlowRepository(InMemoryScheduleRepository):
        async def save_schedules(self, scope, states):
            await asyncio.sleep(0.3)
            saved.extend(s.id for s in states)
            return True

    saver = DebouncedSaver(SlowRepository(), delay=0.05)
    saver.schedule_states("bio", [make_item("a")])
    await asyncio.sleep(0.07)
    saver.schedule_states("bio", [make_item("b")])
    await asyncio.sleep(0.35)
    saver.schedule_states("bio", [make_item("c")])

    assert await saver.close() is True
    assert saved == ["a", "b", "c"]
    assert saver.pending_count == 0


@pytest.mark.asyncio
async def test_cancelled_flush_requeues_its_batch(repo, make_item):
    started = asyncio.Event()

    async def stall(scope, states):
        started.set()
        await asyncio.sleep(10)

    repo.save_schedules.side_effect = stall
    saver = DebouncedSaver(repo, delay=10)
    saver.schedule_states("bio", [make_item("a")])

    flushing = asyncio.create_task(saver.flush())
    await started.wait()
    flushing.cancel()
    with pytest.raises(asyncio.CancelledError):
        await flushing

    assert ("bio", "a") in saver._pending_states
    repo.save_schedules.side_effect = None
    assert await saver.close() is True
