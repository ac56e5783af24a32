"""
Scheduler - spaced-repetition state transitions.

Pure scheduling logic (no I/O, no shared state).

Main workflow:
1. Caller selects an item and collects a grade
2. next_state() routes on the item's phase
3. Learning-phase items walk the configured step sequence
4. Review-phase items grow their interval by ease and grade factor
5. Lapses demote to relearning and may flag the item as a leech
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta

from cadence.application.config import SchedulerParams
from cadence.domain.constants import EASY_EASE_BONUS
from cadence.domain.models import Grade, ItemScheduleState, Phase, round_half_up

logger = logging.getLogger(__name__)


def next_state(
    current: ItemScheduleState,
    grade: Grade,
    params: SchedulerParams,
    now: datetime,
) -> ItemScheduleState:
    """
    Compute an item's schedule after a graded response.

    Args:
        current: State before the response.
        grade: Reviewer grade.
        params: Scheduling parameters.
        now: Time of the response (timezone-aware).

    Returns:
        A new ItemScheduleState. The input is never modified. Suspended
        items are returned unchanged.
    """
    if current.is_suspended:
        logger.warning(f"Attempted to schedule suspended item {current.id}")
        return current

    graded = replace(
        current,
        last_graded_at=now,
        total_repetitions=current.total_repetitions + 1,
    )

    if current.phase in (Phase.NEW, Phase.LEARNING):
        return _schedule_steps(graded, grade, params.learning_steps, params, now)
    if current.phase == Phase.RELEARNING:
        return _schedule_steps(graded, grade, params.relearning_steps, params, now)
    return _schedule_review(graded, grade, params, now)


def _step_minutes(steps: list[float], index: int) -> float:
    """Step length in minutes; out-of-range indexes use the last step."""
    if not steps:
        return 1.0
    if index < 0 or index >= len(steps):
        return steps[-1]
    return steps[index]


def _schedule_steps(
    item: ItemScheduleState,
    grade: Grade,
    steps: list[float],
    params: SchedulerParams,
    now: datetime,
) -> ItemScheduleState:
    """Walk the learning (or relearning) step sequence."""
    relearning = item.phase == Phase.RELEARNING
    step_phase = Phase.RELEARNING if relearning else Phase.LEARNING

    if grade == Grade.AGAIN:
        return replace(
            item,
            phase=step_phase,
            learning_step_index=0,
            due_at=now + timedelta(minutes=_step_minutes(steps, 0)),
        )

    if grade == Grade.HARD:
        index = min(item.learning_step_index, max(0, len(steps) - 1))
        return replace(
            item,
            phase=step_phase,
            learning_step_index=index,
            due_at=now + timedelta(minutes=_step_minutes(steps, index)),
        )

    next_index = item.learning_step_index + 1
    if next_index < len(steps):
        return replace(
            item,
            phase=step_phase,
            learning_step_index=next_index,
            due_at=now + timedelta(minutes=_step_minutes(steps, next_index)),
        )

    # Sequence exhausted: graduate
    if relearning:
        interval = item.interval_days
    elif grade == Grade.EASY:
        interval = _easy_graduating_interval(item, params)
    else:
        interval = round_half_up(params.graduating_interval_days * params.interval_modifier)

    interval = _clamp_interval(interval, params)
    logger.debug(f"Item {item.id} graduating to review in {interval} day(s)")
    return replace(
        item,
        phase=Phase.REVIEW,
        interval_days=interval,
        learning_step_index=0,
        due_at=now + timedelta(days=interval),
    )


def _easy_graduating_interval(item: ItemScheduleState, params: SchedulerParams) -> int:
    """
    Interval for an Easy graduation.

    Uses the fixed easy interval when it exceeds the graduating interval,
    otherwise derives one from the graduating interval and the item's ease.
    """
    if params.easy_interval_days > params.graduating_interval_days:
        return round_half_up(params.easy_interval_days * params.interval_modifier)
    return round_half_up(
        params.graduating_interval_days
        * item.ease_factor
        * params.easy_interval_factor
        * params.interval_modifier
    )


def _schedule_review(
    item: ItemScheduleState,
    grade: Grade,
    params: SchedulerParams,
    now: datetime,
) -> ItemScheduleState:
    """Apply the review-phase interval formula."""
    if grade == Grade.AGAIN:
        return _lapse(item, params, now)

    base = max(1, item.interval_days)
    if grade == Grade.HARD:
        factor = params.hard_interval_factor
    elif grade == Grade.EASY:
        factor = params.easy_bonus
    else:
        factor = 1.0

    interval = base * item.ease_factor * factor
    if grade != Grade.HARD:
        interval += _days_late(item, now)
    interval = round_half_up(interval * params.interval_modifier)

    # Good and Easy always move the item further out
    if grade != Grade.HARD:
        interval = max(interval, base + 1)

    ease = item.ease_factor + EASY_EASE_BONUS if grade == Grade.EASY else item.ease_factor
    interval = _clamp_interval(interval, params)

    return replace(
        item,
        phase=Phase.REVIEW,
        interval_days=interval,
        ease_factor=max(params.minimum_ease, ease),
        learning_step_index=0,
        due_at=now + timedelta(days=interval),
    )


def _lapse(
    item: ItemScheduleState,
    params: SchedulerParams,
    now: datetime,
) -> ItemScheduleState:
    """Demote a forgotten review item to relearning."""
    lapses = item.lapse_count + 1
    ease = max(params.minimum_ease, item.ease_factor * (1.0 - params.lapse_ease_penalty))
    recovered = _clamp_interval(
        round_half_up(item.interval_days * params.lapse_recovery_factor), params
    )

    is_leech = item.is_leech or lapses >= params.leech_threshold
    suspend = is_leech and params.leech_action == "suspend"
    if is_leech and not item.is_leech:
        logger.info(
            f"Item {item.id} flagged as leech after {lapses} lapses"
            + (" (suspended)" if suspend else "")
        )

    return replace(
        item,
        phase=Phase.RELEARNING,
        lapse_count=lapses,
        ease_factor=ease,
        interval_days=recovered,
        learning_step_index=0,
        due_at=now + timedelta(minutes=_step_minutes(params.relearning_steps, 0)),
        is_leech=is_leech,
        is_suspended=item.is_suspended or suspend,
    )


def _days_late(item: ItemScheduleState, now: datetime) -> int:
    overdue = now - item.due_at
    if overdue <= timedelta(0):
        return 0
    return overdue.days


def _clamp_interval(interval: int, params: SchedulerParams) -> int:
    return max(1, min(interval, params.max_interval_days))


def suspend(item: ItemScheduleState) -> ItemScheduleState:
    return replace(item, is_suspended=True)


def unsuspend(item: ItemScheduleState) -> ItemScheduleState:
    return replace(item, is_suspended=False)


def reset_progress(
    item: ItemScheduleState,
    params: SchedulerParams,
    now: datetime,
) -> ItemScheduleState:
    """Return an item to the New phase, clearing lapses and leech status."""
    return ItemScheduleState.new(
        item.id,
        item.project_scope,
        now,
        group_key=item.group_key,
        ease=params.starting_ease,
    )
