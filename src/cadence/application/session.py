"""
Session state for an interactive review loop.

Tracks per-scope daily counters, the learning queue, sibling suppression
and a bounded undo log. One instance per open study screen; its durable
projection (the counters) is persisted separately.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import date, datetime

from ulid import ULID

from cadence.domain.constants import DEFAULT_SCOPE, UNDO_HISTORY_LIMIT
from cadence.domain.models import (
    Grade,
    ItemScheduleState,
    Phase,
    ScopeCounters,
    UndoEntry,
)

logger = logging.getLogger(__name__)


class UndoLog:
    """Fixed-capacity ring buffer of undo entries; the oldest is evicted first."""

    def __init__(self, capacity: int = UNDO_HISTORY_LIMIT):
        self._entries: deque[UndoEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def push(self, entry: UndoEntry) -> None:
        self._entries.append(entry)

    def pop(self) -> UndoEntry | None:
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> UndoEntry | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[UndoEntry]:
        return iter(self._entries)


@dataclass
class SessionState:
    """
    In-memory aggregate mutated on every grading event and every undo.

    Attributes:
        counters: Daily counters per scope.
        learning_queue: Ids cycling through learning/relearning, in FIFO order.
        undo_log: Bounded history of graded responses.
        suppressed_items: Ids hidden from review/new selection until tomorrow.
        suppressed_on: Calendar day the suppression set belongs to.
    """

    counters: dict[str, ScopeCounters] = field(default_factory=dict)
    learning_queue: list[str] = field(default_factory=list)
    undo_log: UndoLog = field(default_factory=UndoLog)
    suppressed_items: set[str] = field(default_factory=set)
    suppressed_on: date | None = None
    session_id: str = field(default_factory=lambda: f"session_{ULID()}")

    def counters_for(self, scope: str) -> ScopeCounters:
        """Counters for a scope, created zeroed on first access."""
        if scope not in self.counters:
            self.counters[scope] = ScopeCounters()
        return self.counters[scope]

    def peek_counters(self, scope: str) -> ScopeCounters:
        """
        Counters used for limit checks.

        The default scope reads the aggregate over all scopes.
        """
        if scope == DEFAULT_SCOPE:
            return self.totals()
        return self.counters.get(scope) or ScopeCounters()

    def totals(self) -> ScopeCounters:
        """Aggregate counters over all scopes."""
        total = ScopeCounters()
        for counters in self.counters.values():
            total.new_items_graded += max(0, counters.new_items_graded)
            total.reviews_completed += max(0, counters.reviews_completed)
        return total

    def is_suppressed(self, item_id: str) -> bool:
        return item_id in self.suppressed_items

    def suppress(self, item_ids: Iterable[str], today: date) -> list[str]:
        """Hide items from review/new selection for the rest of `today`."""
        self.roll_over(today)
        added = [i for i in item_ids if i not in self.suppressed_items]
        self.suppressed_items.update(added)
        self.suppressed_on = today
        return added

    def roll_over(self, today: date) -> bool:
        """Clear suppression left over from a previous calendar day."""
        if self.suppressed_on is not None and self.suppressed_on != today:
            logger.info(
                f"New day {today.isoformat()}: clearing {len(self.suppressed_items)} "
                f"suppressed item(s)"
            )
            self.suppressed_items.clear()
            self.suppressed_on = None
            return True
        return False

    def record_review(
        self,
        prior: ItemScheduleState,
        updated: ItemScheduleState,
        grade: Grade,
        graded_at: datetime,
        scope: str | None = None,
    ) -> UndoEntry:
        """
        Update bookkeeping after a graded response.

        Pushes an undo entry, bumps the scope's counters (a graded learning
        item counts as a review) and maintains the learning queue.
        """
        scope = scope or prior.project_scope or DEFAULT_SCOPE
        entry = UndoEntry(
            item_id=prior.id,
            prior_state=prior,
            grade=grade,
            graded_at=graded_at,
            scope=scope,
        )
        self.undo_log.push(entry)

        counters = self.counters_for(scope)
        if prior.phase == Phase.NEW:
            counters.new_items_graded += 1
        else:
            counters.reviews_completed += 1

        self._update_learning_queue(prior, updated, grade)
        return entry

    def sync_learning_queue(self, item: ItemScheduleState) -> None:
        """Ensure queue membership matches the item's phase."""
        if item.is_learning:
            if item.id not in self.learning_queue:
                self.learning_queue.append(item.id)
        elif item.id in self.learning_queue:
            self.learning_queue.remove(item.id)

    def _update_learning_queue(
        self, prior: ItemScheduleState, updated: ItemScheduleState, grade: Grade
    ) -> None:
        if not updated.is_learning:
            if prior.id in self.learning_queue:
                self.learning_queue.remove(prior.id)
            return

        # Again on an item already cycling sends it to the back
        if prior.is_learning and grade == Grade.AGAIN and prior.id in self.learning_queue:
            self.learning_queue.remove(prior.id)
        if prior.id not in self.learning_queue:
            self.learning_queue.append(prior.id)
