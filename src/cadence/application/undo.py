"""Undo of the most recent graded response."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from cadence.application.session import SessionState
from cadence.domain.models import ItemScheduleState, Phase, UndoEntry

logger = logging.getLogger(__name__)


@dataclass
class UndoResult:
    """Session and item collection after an undo."""

    session: SessionState
    items: dict[str, ItemScheduleState]
    entry: UndoEntry


def undo(
    session: SessionState,
    items: Mapping[str, ItemScheduleState],
) -> UndoResult | None:
    """
    Revert the most recent graded response.

    Restores the item's prior state into a copy of the collection and
    decrements the counter the grading incremented, never below zero.

    Returns:
        UndoResult, or None when there is nothing to undo.
    """
    entry = session.undo_log.pop()
    if entry is None:
        return None

    restored = dict(items)
    restored[entry.item_id] = entry.prior_state

    counters = session.counters_for(entry.scope)
    if entry.prior_state.phase == Phase.NEW:
        counters.new_items_graded = max(0, counters.new_items_graded - 1)
    else:
        counters.reviews_completed = max(0, counters.reviews_completed - 1)

    session.sync_learning_queue(entry.prior_state)

    logger.debug(f"Undid grade {entry.grade.name} on item {entry.item_id}")
    return UndoResult(session=session, items=restored, entry=entry)
