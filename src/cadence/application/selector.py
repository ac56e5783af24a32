"""
Item selector for the review loop.

Picks the next item to present by walking priority tiers:
1. Learning/relearning items due now (never limited)
2. Review items due now, within the scope's daily review limit
3. New items, within the scope's daily new-item limit
4. Learning-ahead fallback for learning items due shortly
"""

import logging
import random
from collections.abc import Mapping
from datetime import datetime, timedelta

from cadence.application.config import SchedulerParams
from cadence.application.session import SessionState
from cadence.domain.constants import LEARN_AHEAD_MINUTES
from cadence.domain.models import ItemScheduleState, Phase, ScopeLimits

logger = logging.getLogger(__name__)


def select_next(
    items: Mapping[str, ItemScheduleState],
    session: SessionState,
    params: SchedulerParams,
    limits: ScopeLimits,
    now: datetime,
    rng: random.Random | None = None,
) -> str | None:
    """
    Pick the next item to present for a scope.

    Args:
        items: Full item collection, in insertion order.
        session: Current session state.
        params: Scheduling parameters (ordering, review-ahead).
        limits: Daily limits of the scope being studied.
        now: Current time.
        rng: Random source for `new_item_order = random`.

    Returns:
        The id of the item to present, or None if nothing qualifies.
    """
    if not items:
        return None

    in_scope = [
        item for item in items.values() if limits.includes(item) and not item.is_suspended
    ]
    if not in_scope:
        return None

    learning = [item for item in in_scope if item.is_learning]

    picked = _due_learning(learning, session, now)
    if picked:
        logger.debug(f"Selected due learning item {picked} in scope {limits.scope}")
        return picked

    counters = session.peek_counters(limits.scope)

    if limits.reviews_unlimited or counters.reviews_completed < limits.max_reviews_per_day:
        picked = _due_review(in_scope, session, params, now)
        if picked:
            logger.debug(f"Selected review item {picked} in scope {limits.scope}")
            return picked
    else:
        logger.debug(
            f"Review limit reached in scope {limits.scope}: "
            f"{counters.reviews_completed}/{limits.max_reviews_per_day}"
        )

    if counters.new_items_graded < limits.new_items_per_day:
        picked = _new_item(in_scope, session, params, rng)
        if picked:
            logger.debug(f"Selected new item {picked} in scope {limits.scope}")
            return picked
    else:
        logger.debug(
            f"New item limit reached in scope {limits.scope}: "
            f"{counters.new_items_graded}/{limits.new_items_per_day}"
        )

    picked = _learn_ahead(learning, now)
    if picked:
        logger.debug(f"Learning ahead with item {picked} in scope {limits.scope}")
        return picked

    return None


def _due_learning(
    learning: list[ItemScheduleState],
    session: SessionState,
    now: datetime,
) -> str | None:
    due = [item for item in learning if item.due_at <= now]
    if not due:
        return None

    queue_pos = {item_id: pos for pos, item_id in enumerate(session.learning_queue)}
    order = {item.id: pos for pos, item in enumerate(learning)}
    due.sort(
        key=lambda item: (
            item.due_at,
            queue_pos.get(item.id, len(queue_pos)),
            order[item.id],
        )
    )
    return due[0].id


def _due_review(
    in_scope: list[ItemScheduleState],
    session: SessionState,
    params: SchedulerParams,
    now: datetime,
) -> str | None:
    candidates = [
        item
        for item in in_scope
        if item.phase == Phase.REVIEW
        and not session.is_suppressed(item.id)
        and (params.review_ahead or item.due_at <= now)
    ]
    if not candidates:
        return None
    # sort is stable: equal due times keep collection order
    candidates.sort(key=lambda item: item.due_at)
    return candidates[0].id


def _new_item(
    in_scope: list[ItemScheduleState],
    session: SessionState,
    params: SchedulerParams,
    rng: random.Random | None,
) -> str | None:
    candidates = [
        item
        for item in in_scope
        if item.phase == Phase.NEW and not session.is_suppressed(item.id)
    ]
    if not candidates:
        return None
    if params.new_item_order == "random":
        return (rng or random).choice(candidates).id
    return candidates[0].id


def _learn_ahead(learning: list[ItemScheduleState], now: datetime) -> str | None:
    """
    Learning items due within the learn-ahead window, or overdue past it.
    """
    window = timedelta(minutes=LEARN_AHEAD_MINUTES)
    candidates = [
        item
        for item in learning
        if (timedelta(0) < item.due_at - now <= window) or (now - item.due_at > window)
    ]
    if not candidates:
        return None
    candidates.sort(key=lambda item: item.due_at)
    return candidates[0].id
