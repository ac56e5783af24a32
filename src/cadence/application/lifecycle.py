"""
Session lifecycle: initialization, completion and maintenance.

Initialization never fails: counters come from the primary repository,
then the local fallback record, then zeros.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import date, datetime, timedelta

from cadence.application.config import SchedulerParams
from cadence.application.selector import select_next
from cadence.application.session import SessionState
from cadence.domain.constants import DEFAULT_SCOPE, MINUTES_PER_DAY, STUCK_LEARNING_MINUTES
from cadence.domain.models import (
    ItemScheduleState,
    Phase,
    ScopeCounters,
    ScopeLimits,
    round_half_up,
)
from cadence.domain.ports import FallbackCounterStore, ScheduleRepository

logger = logging.getLogger(__name__)


async def initialize_session(
    repository: ScheduleRepository | None,
    fallback: FallbackCounterStore | None,
    scopes: Iterable[str],
    today: date,
) -> SessionState:
    """
    Build a SessionState with today's counters for each scope.

    Args:
        repository: Primary repository, or None when unavailable.
        fallback: Local date-keyed counter store, or None.
        scopes: Scopes to load counters for, the studied scope first.
        today: Current calendar day.
    """
    session = SessionState()
    for index, scope in enumerate(scopes):
        # The fallback record is one aggregate; only the first scope reads it
        session.counters[scope] = await _load_counters(
            repository, fallback if index == 0 else None, scope, today
        )

    logger.info(
        f"Initialized {session.session_id} for scopes {sorted(session.counters)}"
    )
    return session


def session_scopes(scope: str, items: Mapping[str, ItemScheduleState]) -> list[str]:
    """The studied scope first, then every other scope the items belong to."""
    return [scope] + sorted({item.project_scope for item in items.values()} - {scope})


async def load_items(
    repository: ScheduleRepository,
    scope: str,
    item_ids: Iterable[str],
    now: datetime,
    starting_ease: float,
) -> dict[str, ItemScheduleState]:
    """
    Load item states, substituting defaults when the repository fails.

    Never-graded New items take `starting_ease`, whatever ease the
    repository filled in for them.
    """
    ids = list(item_ids)
    try:
        items = await repository.load_schedules(scope, ids)
    except Exception as e:
        logger.warning(f"Failed to load schedules for scope {scope}, using defaults: {e}")
        items = {}

    for item_id in ids:
        if item_id not in items:
            items[item_id] = ItemScheduleState.new(item_id, scope, now, ease=starting_ease)

    for item_id, item in items.items():
        if (
            item.phase == Phase.NEW
            and item.last_graded_at is None
            and item.total_repetitions == 0
            and item.ease_factor != starting_ease
        ):
            items[item_id] = replace(item, ease_factor=starting_ease)
    return items


async def _load_counters(
    repository: ScheduleRepository | None,
    fallback: FallbackCounterStore | None,
    scope: str,
    today: date,
) -> ScopeCounters:
    if repository is not None and repository.is_authenticated:
        try:
            counters = await repository.load_daily_counters(scope)
            return _clamped(counters)
        except Exception as e:
            logger.warning(f"Failed to load counters for scope {scope}, using fallback: {e}")

    if fallback is not None:
        try:
            stored = fallback.load(today)
            if stored is not None:
                return _clamped(stored)
        except Exception as e:
            logger.warning(f"Failed to read fallback counters: {e}")

    return ScopeCounters()


def _clamped(counters: ScopeCounters) -> ScopeCounters:
    return ScopeCounters(
        new_items_graded=max(0, counters.new_items_graded),
        reviews_completed=max(0, counters.reviews_completed),
    )


async def migrate_fallback_counters(
    repository: ScheduleRepository | None,
    fallback: FallbackCounterStore | None,
    today: date,
) -> bool:
    """
    Copy today's fallback counters into the primary repository, once.

    Only fires when the repository is authenticated and the fallback holds
    nonzero progress. The fallback entry is cleared after a successful save.

    Returns:
        True if counters were migrated.
    """
    if repository is None or fallback is None or not repository.is_authenticated:
        return False

    try:
        stored = fallback.load(today)
        if stored is None or stored.is_zero():
            return False

        if not await repository.save_daily_counters(DEFAULT_SCOPE, _clamped(stored)):
            logger.warning("Fallback counter migration was rejected by the repository")
            return False

        fallback.clear(today)
        logger.info(
            f"Migrated fallback counters for {today.isoformat()}: "
            f"new={stored.new_items_graded} reviews={stored.reviews_completed}"
        )
        return True
    except Exception as e:
        logger.warning(f"Failed to migrate fallback counters: {e}")
        return False


def waiting_learning(
    items: Mapping[str, ItemScheduleState],
    limits: ScopeLimits,
    now: datetime,
) -> list[ItemScheduleState]:
    """Unsuspended in-scope learning items that are not yet due."""
    return [
        item
        for item in items.values()
        if item.is_learning
        and not item.is_suspended
        and limits.includes(item)
        and item.due_at > now
    ]


def is_session_complete(
    items: Mapping[str, ItemScheduleState],
    session: SessionState,
    params: SchedulerParams,
    limits: ScopeLimits,
    now: datetime,
) -> bool:
    """
    A scope is complete when nothing is selectable and nothing is waiting.

    If learning items are merely waiting, callers should poll again at
    next_poll_at().
    """
    if select_next(items, session, params, limits, now) is not None:
        return False
    return not waiting_learning(items, limits, now)


def next_poll_at(
    items: Mapping[str, ItemScheduleState],
    limits: ScopeLimits,
    now: datetime,
) -> datetime | None:
    """Earliest due time among waiting learning items."""
    waiting = waiting_learning(items, limits, now)
    if not waiting:
        return None
    return min(item.due_at for item in waiting)


def promote_stuck_learning(
    items: Mapping[str, ItemScheduleState],
    now: datetime,
    threshold_minutes: float = STUCK_LEARNING_MINUTES,
) -> tuple[dict[str, ItemScheduleState], list[str]]:
    """
    Move learning items parked far in the future straight to review.

    Items due more than `threshold_minutes` from now keep their due time,
    take an interval derived from the remaining wait and reset their step.

    Returns:
        (new collection, ids that were promoted)
    """
    threshold = timedelta(minutes=threshold_minutes)
    updated = dict(items)
    promoted: list[str] = []

    for item_id, item in items.items():
        if not item.is_learning or item.is_suspended:
            continue
        remaining = item.due_at - now
        if remaining <= threshold:
            continue

        minutes = remaining.total_seconds() / 60.0
        updated[item_id] = replace(
            item,
            phase=Phase.REVIEW,
            interval_days=max(1, round_half_up(minutes / MINUTES_PER_DAY)),
            learning_step_index=0,
        )
        promoted.append(item_id)

    if promoted:
        logger.info(f"Promoted {len(promoted)} stuck learning item(s) to review")
    return updated, promoted


def roll_over_day(session: SessionState, today: date) -> bool:
    """Start a new calendar day: sibling suppression does not carry over."""
    return session.roll_over(today)
