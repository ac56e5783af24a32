"""
Study Service: drives one interactive review loop.

Holds the in-memory item collection and session state, wires the pure
scheduling functions together and hands persistence off to the
DebouncedSaver.
"""

import logging
import random
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from cadence.application.config import SchedulerParams
from cadence.application.group_index import GroupIndex
from cadence.application.lifecycle import (
    initialize_session,
    load_items,
    migrate_fallback_counters,
    promote_stuck_learning,
    roll_over_day,
    session_scopes,
)
from cadence.application.save_queue import DebouncedSaver
from cadence.application.scheduler import next_state
from cadence.application.selector import select_next
from cadence.application.session import SessionState
from cadence.application.stats import DailyStats, SessionStatsCalculator, SessionSummary
from cadence.application.undo import UndoResult, undo
from cadence.domain.errors import CadenceError, UnknownItemError
from cadence.domain.models import (
    Grade,
    GradeOutcome,
    ItemScheduleState,
    ScopeLimits,
)
from cadence.domain.ports import FallbackCounterStore, ScheduleRepository

logger = logging.getLogger(__name__)


class StudyService:
    """
    Application service for a single scope's study session.

    Usage:
        service = StudyService(repo, fallback, params, limits)
        await service.open(item_ids)
        item = service.next_item(now)
        service.grade(item.id, Grade.GOOD, now)
        await service.close()
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        fallback: FallbackCounterStore | None,
        params: SchedulerParams,
        limits: ScopeLimits,
        *,
        group_index: GroupIndex | None = None,
        saver: DebouncedSaver | None = None,
        timezone: str = "UTC",
        rng: random.Random | None = None,
    ):
        self.repository = repository
        self.fallback = fallback
        self.params = params
        self.limits = limits
        self.group_index = group_index or GroupIndex()
        self.saver = saver or DebouncedSaver(repository)
        self.tz = ZoneInfo(timezone)
        self.rng = rng
        self.calculator = SessionStatsCalculator()

        self.items: dict[str, ItemScheduleState] = {}
        self._session: SessionState | None = None

    @property
    def scope(self) -> str:
        return self.limits.scope

    @property
    def session(self) -> SessionState:
        if self._session is None:
            raise CadenceError("Study session is not open")
        return self._session

    def today(self, now: datetime) -> date:
        """Calendar day of `now` in the configured time zone."""
        return now.astimezone(self.tz).date()

    async def open(
        self,
        item_ids: Iterable[str],
        today: date | None = None,
        *,
        now: datetime | None = None,
        groups: Mapping[str, str] | None = None,
    ) -> SessionState:
        """
        Load schedules and counters and prepare the session.

        Fallback counters are migrated before counters are loaded, so the
        session sees the migrated progress. Stuck learning items are
        promoted to review as part of opening. `groups` sets the
        sibling key of the listed items.
        """
        now = now or datetime.now(UTC)
        today = today or self.today(now)
        ids = list(item_ids)

        self.items = await load_items(
            self.repository, self.scope, ids, now, self.params.starting_ease
        )

        for item_id, group_key in (groups or {}).items():
            item = self.items.get(item_id)
            if item is not None and item.group_key != group_key:
                self.items[item_id] = replace(item, group_key=group_key)

        await migrate_fallback_counters(self.repository, self.fallback, today)
        self._session = await initialize_session(
            self.repository, self.fallback, session_scopes(self.scope, self.items), today
        )
        self.group_index.invalidate()

        for item in self.items.values():
            if item.is_learning and not item.is_suspended:
                self._session.sync_learning_queue(item)

        self.promote_stuck(now)
        logger.info(f"Opened study session for scope {self.scope} with {len(self.items)} item(s)")
        return self._session

    def next_item(self, now: datetime) -> ItemScheduleState | None:
        """The next item to present, or None when nothing qualifies right now."""
        roll_over_day(self.session, self.today(now))
        item_id = select_next(self.items, self.session, self.params, self.limits, now, self.rng)
        return self.items[item_id] if item_id else None

    def grade(self, item_id: str, grade: Grade | int | str, now: datetime) -> GradeOutcome:
        """
        Apply a graded response.

        Memory is updated immediately; the item state and its scope's
        counters are queued for a debounced save.

        Raises:
            UnknownItemError: if the item is not in the collection.
            ValueError: if the grade is not in 0..3.
        """
        if item_id not in self.items:
            raise UnknownItemError(item_id)
        if not isinstance(grade, Grade):
            grade = Grade.parse(grade)

        today = self.today(now)
        roll_over_day(self.session, today)

        previous = self.items[item_id]
        if previous.is_suspended:
            logger.debug(f"Ignoring grade for suspended item {item_id}")
            return GradeOutcome(previous=previous, updated=previous)

        updated = next_state(previous, grade, self.params, now)
        self.items[item_id] = updated
        entry = self.session.record_review(previous, updated, grade, now)

        suppressed: list[str] = []
        if self.params.bury_siblings and updated.group_key:
            siblings = self.group_index.siblings_of(updated, self.items)
            suppressed = self.session.suppress(siblings, today)
            if suppressed:
                logger.debug(f"Buried {len(suppressed)} sibling(s) of {item_id}")

        leech_flagged = updated.is_leech and not previous.is_leech
        if leech_flagged:
            logger.info(f"Item {item_id} flagged as leech after {updated.lapse_count} lapses")

        self._persist(updated, entry.scope, today)
        return GradeOutcome(
            previous=previous,
            updated=updated,
            leech_flagged=leech_flagged,
            suppressed=suppressed,
        )

    def undo(self, now: datetime | None = None) -> UndoResult | None:
        """Revert the most recent graded response, if any."""
        result = undo(self.session, self.items)
        if result is None:
            return None

        self.items = result.items
        restored = result.entry.prior_state
        self._persist(restored, result.entry.scope, self.today(now or datetime.now(UTC)))
        return result

    def promote_stuck(self, now: datetime) -> list[str]:
        """Run the stuck-learning sweep and queue the promoted items for saving."""
        self.items, promoted = promote_stuck_learning(self.items, now)
        for item_id in promoted:
            item = self.items[item_id]
            self.session.sync_learning_queue(item)
            self.saver.schedule_states(item.project_scope, [item])
        return promoted

    def summary(self, now: datetime) -> SessionSummary:
        return self.calculator.summary(self.items, self.session, self.params, self.limits, now)

    def daily_stats(self) -> DailyStats:
        return self.calculator.daily_stats(self.session)

    def add_items(self, states: Iterable[ItemScheduleState]) -> None:
        for state in states:
            self.items[state.id] = state
            self.session.sync_learning_queue(state)
        self.group_index.invalidate()

    def remove_items(self, item_ids: Iterable[str]) -> None:
        for item_id in item_ids:
            self.items.pop(item_id, None)
            if item_id in self.session.learning_queue:
                self.session.learning_queue.remove(item_id)
        self.group_index.invalidate()

    async def close(self) -> bool:
        """Flush pending saves. Returns False if some writes are still pending."""
        flushed = await self.saver.close()
        if not flushed:
            logger.warning(f"{self.saver.pending_count} write(s) could not be saved")
        return flushed

    def _persist(self, item: ItemScheduleState, scope: str, today: date) -> None:
        self.saver.schedule_states(item.project_scope, [item])
        self.saver.schedule_counters(scope, self.session.counters_for(scope))

        if self.fallback is not None and not self.repository.is_authenticated:
            try:
                self.fallback.save(today, self.session.totals())
            except Exception as e:
                logger.warning(f"Failed to write fallback counters: {e}")
