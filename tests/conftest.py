from dataclasses import replace
from datetime import UTC, datetime

import pytest

from cadence.application.config import SchedulerParams
from cadence.application.session import SessionState
from cadence.domain.models import ItemScheduleState, Phase, ScopeLimits


@pytest.fixture
def now():
    """A fixed, timezone-aware 'current time'."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def params():
    return SchedulerParams()


@pytest.fixture
def session():
    return SessionState()


@pytest.fixture
def limits():
    return ScopeLimits(scope="bio", new_items_per_day=20, max_reviews_per_day=200)


@pytest.fixture
def make_item(now):
    """Factory for item states; keyword overrides are applied with replace()."""

    def _make(item_id: str, scope: str = "bio", phase: Phase = Phase.NEW, **overrides):
        item = ItemScheduleState.new(item_id, scope, now)
        return replace(item, phase=phase, **overrides)

    return _make


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data
    monkeypatch.setenv("HOME", str(home))
    return home
