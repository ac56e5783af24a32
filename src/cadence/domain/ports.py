"""
Ports (interfaces) for persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date

from .models import ItemScheduleState, ScopeCounters


class ScheduleRepository(ABC):
    """
    Port for loading and saving item schedules and daily counters.

    Implementations:
        - HttpScheduleRepository: Talks to the remote REST backend.
        - FileScheduleRepository: Stores a JSON document on disk.
        - InMemoryScheduleRepository: Dict-backed, for tests and embedding.
    """

    @property
    def is_authenticated(self) -> bool:
        """Whether calls are made on behalf of a known owner."""
        return True

    @abstractmethod
    async def load_schedules(
        self, scope: str, item_ids: Iterable[str]
    ) -> dict[str, ItemScheduleState]:
        """
        Load schedule states for the given items.

        Args:
            scope: Project scope the items belong to.
            item_ids: Ids to load.

        Returns:
            Mapping of every requested id to its state. Ids that were never
            scheduled, or whose stored record is malformed, map to a default
            New-phase state.
        """
        pass

    @abstractmethod
    async def save_schedules(
        self, scope: str, states: Iterable[ItemScheduleState]
    ) -> bool:
        """
        Upsert schedule states keyed by (owner, scope, item id).

        Returns:
            True on success, False on failure.
        """
        pass

    @abstractmethod
    async def load_daily_counters(self, scope: str) -> ScopeCounters:
        """Load today's counters for a scope."""
        pass

    @abstractmethod
    async def save_daily_counters(self, scope: str, counters: ScopeCounters) -> bool:
        """Persist today's counters for a scope."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class FallbackCounterStore(ABC):
    """
    Port for the local, date-keyed counter record.

    Read when the primary repository is unreachable or the caller is
    unauthenticated.
    """

    @abstractmethod
    def load(self, day: date) -> ScopeCounters | None:
        """Counters recorded for `day`, or None if there is no record."""
        pass

    @abstractmethod
    def save(self, day: date, counters: ScopeCounters) -> None:
        pass

    @abstractmethod
    def clear(self, day: date) -> None:
        pass
