from collections.abc import Iterable
from datetime import UTC, datetime

from cadence.domain.constants import DEFAULT_SCOPE
from cadence.domain.models import ItemScheduleState, ScopeCounters
from cadence.domain.ports import ScheduleRepository


class InMemoryScheduleRepository(ScheduleRepository):
    """Dict-backed repository for tests and embedding."""

    def __init__(self, authenticated: bool = True):
        self.authenticated = authenticated
        self.schedules: dict[tuple[str, str], ItemScheduleState] = {}
        self.counters: dict[str, ScopeCounters] = {}

    @property
    def is_authenticated(self) -> bool:
        return self.authenticated

    async def load_schedules(
        self, scope: str, item_ids: Iterable[str]
    ) -> dict[str, ItemScheduleState]:
        now = datetime.now(UTC)
        result = {}
        for item_id in item_ids:
            if scope == DEFAULT_SCOPE:
                stored = next(
                    (s for (_, sid), s in self.schedules.items() if sid == item_id), None
                )
            else:
                stored = self.schedules.get((scope, item_id))
            result[item_id] = stored or ItemScheduleState.new(item_id, scope, now)
        return result

    async def save_schedules(
        self, scope: str, states: Iterable[ItemScheduleState]
    ) -> bool:
        for state in states:
            self.schedules[(state.project_scope, state.id)] = state
        return True

    async def load_daily_counters(self, scope: str) -> ScopeCounters:
        return self.counters.get(scope, ScopeCounters()).copy()

    async def save_daily_counters(self, scope: str, counters: ScopeCounters) -> bool:
        self.counters[scope] = counters.copy()
        return True
