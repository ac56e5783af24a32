import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from cadence.domain.errors import PersistenceError
from cadence.domain.models import ItemScheduleState, Phase, ScopeCounters
from cadence.infrastructure.adapters.http_store import HttpScheduleRepository

ROW = {
    "user_id": "u1",
    "project_id": "bio",
    "card_id": "a",
    "state": "review",
    "card_interval": 6,
    "ease": 2.3,
    "due": "2024-03-05T12:00:00Z",
    "last_reviewed": "2024-02-28T12:00:00Z",
    "repetitions": 4,
    "lapses": 1,
    "learning_step": 0,
    "is_leech": False,
    "is_suspended": False,
    "note_id": "n1",
}


def _repo(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("token", "t0k")
    kwargs.setdefault("user_id", "u1")
    return HttpScheduleRepository("https://api.example.test/", client=client, **kwargs)


@pytest.mark.asyncio
async def test_load_schedules_parses_rows_and_defaults_missing():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json=[ROW, {"card_id": "b", "project_id": "bio", "due": "bad"}])

    repo = _repo(handler)
    states = await repo.load_schedules("bio", ["a", "b", "c"])

    assert "projectId=bio" in seen["url"]
    assert states["a"].phase == Phase.REVIEW
    assert states["a"].interval_days == 6
    assert states["a"].group_key == "n1"
    assert states["a"].due_at == datetime(2024, 3, 5, 12, tzinfo=UTC)
    # Malformed and missing rows fall back to new items
    assert states["b"].phase == Phase.NEW
    assert states["c"].phase == Phase.NEW
    await repo.close()


@pytest.mark.asyncio
async def test_global_scope_does_not_filter_by_project():
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[])

    repo = _repo(handler)
    await repo.load_schedules("global", ["a"])
    assert seen["params"] == {"userId": "u1"}


@pytest.mark.asyncio
async def test_server_error_raises_persistence_error():
    repo = _repo(lambda request: httpx.Response(500, json={"error": "boom"}))
    with pytest.raises(PersistenceError):
        await repo.load_schedules("bio", ["a"])
    with pytest.raises(PersistenceError):
        await repo.load_daily_counters("bio")


@pytest.mark.asyncio
async def test_save_schedules_posts_one_row_per_item():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    repo = _repo(handler)
    state = ItemScheduleState.new("a", "bio", datetime(2024, 3, 1, tzinfo=UTC), group_key="n1")

    assert await repo.save_schedules("bio", [state]) is True
    row = bodies[0]["state"]
    assert row["card_id"] == "a"
    assert row["project_id"] == "bio"
    assert row["user_id"] == "u1"
    assert row["state"] == "new"
    assert row["note_id"] == "n1"


@pytest.mark.asyncio
async def test_save_schedules_reports_failure():
    repo = _repo(lambda request: httpx.Response(400, json={"error": "Missing fields"}))
    state = ItemScheduleState.new("a", "bio", datetime(2024, 3, 1, tzinfo=UTC))
    assert await repo.save_schedules("bio", [state]) is False


@pytest.mark.asyncio
async def test_daily_counters_round_trip_over_http():
    store = {}

    def handler(request):
        if request.method == "POST":
            store.update(json.loads(request.content))
            return httpx.Response(200, json={"success": True})
        return httpx.Response(200, json=store)

    repo = _repo(handler)
    assert await repo.save_daily_counters("bio", ScopeCounters(3, 8)) is True
    assert store["new_cards_studied"] == 3
    assert await repo.load_daily_counters("bio") == ScopeCounters(3, 8)


@pytest.mark.asyncio
async def test_unauthenticated_repository_stays_offline():
    handler = AsyncMock()
    repo = HttpScheduleRepository("https://api.example.test")
    repo._request = handler

    assert not repo.is_authenticated
    states = await repo.load_schedules("bio", ["a"])
    assert states["a"].phase == Phase.NEW
    assert await repo.save_schedules("bio", [states["a"]]) is False
    assert await repo.save_daily_counters("bio", ScopeCounters(1, 0)) is False
    with pytest.raises(PersistenceError):
        await repo.load_daily_counters("bio")
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_is_responsive_handles_connection_errors():
    def handler(request):
        raise httpx.ConnectError("refused")

    repo = _repo(handler)
    assert await repo.is_responsive() is False


@pytest.mark.asyncio
async def test_daily_counters_are_dated_in_reviewer_timezone():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    repo = _repo(handler, timezone="Pacific/Auckland")
    late_evening_utc = datetime(2024, 3, 1, 20, 0, tzinfo=UTC)
    with patch("cadence.infrastructure.adapters.http_store.datetime") as mock_datetime:
        mock_datetime.now.side_effect = lambda tz=None: late_evening_utc.astimezone(tz)
        assert await repo.save_daily_counters("bio", ScopeCounters(1, 0)) is True

    assert bodies[0]["study_date"] == "2024-03-02"
