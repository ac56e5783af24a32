"""
Sibling index cache.

Derives a group_key -> [item_id, ...] mapping from the item collection.
The mapping is a disposable view: it is rebuilt lazily after an explicit
invalidate() or once its validity window elapses.
"""

import logging
import time
from collections.abc import Callable, Mapping

from cadence.domain.constants import GROUP_INDEX_TTL
from cadence.domain.models import ItemScheduleState

logger = logging.getLogger(__name__)


class GroupIndex:
    """
    Read-through cache of sibling groups.

    Every mutation path that adds, removes or re-groups items must call
    invalidate(); the TTL only bounds how long a missed invalidation can
    linger.
    """

    def __init__(
        self,
        ttl_seconds: float = GROUP_INDEX_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._clock = clock
        self._groups: dict[str, list[str]] | None = None
        self._built_at = 0.0

    def get_or_build(self, items: Mapping[str, ItemScheduleState]) -> dict[str, list[str]]:
        """Return the cached mapping, rebuilding it if missing or stale."""
        if self._groups is not None and not self.is_valid():
            logger.debug("Group index expired, rebuilding")
            self._groups = None

        if self._groups is None:
            self._groups = self._build(items)
            self._built_at = self._clock()

        return self._groups

    def siblings_of(
        self, item: ItemScheduleState, items: Mapping[str, ItemScheduleState]
    ) -> list[str]:
        """Ids sharing `item`'s group key, excluding the item itself."""
        if not item.group_key:
            return []
        group = self.get_or_build(items).get(item.group_key, [])
        return [item_id for item_id in group if item_id != item.id]

    def invalidate(self) -> None:
        self._groups = None
        self._built_at = 0.0

    def is_valid(self) -> bool:
        return self._groups is not None and self._clock() - self._built_at <= self._ttl

    @staticmethod
    def _build(items: Mapping[str, ItemScheduleState]) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for item in items.values():
            if item.group_key:
                groups.setdefault(item.group_key, []).append(item.id)
        return groups
