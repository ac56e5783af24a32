"""
Session statistics for presentation.

This is a pure computation module with no I/O.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from cadence.application.config import SchedulerParams
from cadence.application.lifecycle import is_session_complete, next_poll_at
from cadence.application.session import SessionState
from cadence.domain.constants import ESTIMATED_SECONDS_PER_ITEM
from cadence.domain.models import Grade, ItemScheduleState, Phase, ScopeLimits


@dataclass
class StudyStats:
    """
    Counts of what can be studied right now in one scope.

    "Due" means learning or review items available now; new items are
    counted separately.
    """

    available_new: int
    due_learning: int
    due_review: int
    due_total: int
    total_items: int
    total_learning: int  # due + waiting


@dataclass
class SessionSummary:
    is_complete: bool
    available_items: int
    new_remaining: int
    reviews_remaining: int
    learning_due: int
    next_poll_at: datetime | None = None


@dataclass
class DailyStats:
    new_items_graded: int
    reviews_completed: int
    lapses: int
    estimated_seconds: int
    accuracy: float  # percentage of Good/Easy responses


@dataclass
class ScopeOverview:
    """Per-scope badge counts, ignoring daily limits."""

    due: int = 0
    new: int = 0
    learning: int = 0
    suspended: list[str] = field(default_factory=list)


class SessionStatsCalculator:
    """
    Computes study statistics from the item collection and session state.

    Stateless and side-effect free.
    """

    def study_stats(
        self,
        items: Mapping[str, ItemScheduleState],
        session: SessionState,
        limits: ScopeLimits,
        now: datetime,
    ) -> StudyStats:
        """
        Session-aware counts for a scope, with daily limits applied.
        """
        scoped = [item for item in items.values() if limits.includes(item)]
        active = [item for item in scoped if not item.is_suspended]
        counters = session.peek_counters(limits.scope)

        new_slots = max(0, limits.new_items_per_day - counters.new_items_graded)
        new_total = sum(1 for item in active if item.phase == Phase.NEW)
        available_new = min(new_total, new_slots)

        learning = [item for item in active if item.is_learning]
        due_learning = sum(1 for item in learning if item.due_at <= now)

        review_total = sum(
            1 for item in active if item.phase == Phase.REVIEW and item.due_at <= now
        )
        if limits.reviews_unlimited:
            due_review = review_total
        else:
            review_slots = max(0, limits.max_reviews_per_day - counters.reviews_completed)
            due_review = min(review_total, review_slots)

        return StudyStats(
            available_new=available_new,
            due_learning=due_learning,
            due_review=due_review,
            due_total=due_learning + due_review,
            total_items=len(scoped),
            total_learning=len(learning),
        )

    def summary(
        self,
        items: Mapping[str, ItemScheduleState],
        session: SessionState,
        params: SchedulerParams,
        limits: ScopeLimits,
        now: datetime,
    ) -> SessionSummary:
        stats = self.study_stats(items, session, limits, now)
        return SessionSummary(
            is_complete=is_session_complete(items, session, params, limits, now),
            available_items=stats.due_total,
            new_remaining=stats.available_new,
            reviews_remaining=stats.due_review,
            learning_due=stats.due_learning,
            next_poll_at=next_poll_at(items, limits, now),
        )

    def daily_stats(self, session: SessionState) -> DailyStats:
        """
        Today's progress.

        Lapses, time and accuracy are derived from the retained undo history,
        so they only cover the most recent responses.
        """
        history = list(session.undo_log)
        totals = session.totals()
        graded = len(history)
        good_or_easy = sum(1 for entry in history if entry.grade >= Grade.GOOD)

        return DailyStats(
            new_items_graded=totals.new_items_graded,
            reviews_completed=totals.reviews_completed,
            lapses=sum(1 for entry in history if entry.grade == Grade.AGAIN),
            estimated_seconds=graded * ESTIMATED_SECONDS_PER_ITEM,
            accuracy=(good_or_easy / graded) * 100 if graded else 0.0,
        )

    def scope_overview(
        self,
        items: Mapping[str, ItemScheduleState],
        now: datetime,
    ) -> dict[str, ScopeOverview]:
        """Due/new/learning counts grouped by project scope."""
        overview: dict[str, ScopeOverview] = {}
        for item in items.values():
            entry = overview.setdefault(item.project_scope, ScopeOverview())
            if item.is_suspended:
                entry.suspended.append(item.id)
                continue
            if item.phase == Phase.NEW:
                entry.new += 1
            elif item.is_learning:
                entry.learning += 1
                if item.due_at <= now:
                    entry.due += 1
            elif item.due_at <= now:
                entry.due += 1
        return overview

    def leeches(self, items: Mapping[str, ItemScheduleState]) -> list[str]:
        return [item.id for item in items.values() if item.is_leech]
