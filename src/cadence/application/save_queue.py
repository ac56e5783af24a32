"""
Debounced, fire-and-forget persistence of schedule state and counters.

Pending writes are coalesced per (scope, item id) and per scope, so the
queue never grows beyond the number of distinct items touched. A flush
runs once no new write has arrived for the quiet period.
"""

import asyncio
import logging
from collections.abc import Iterable

from cadence.domain.constants import REQUEST_TIMEOUT, SAVE_DEBOUNCE_SECONDS
from cadence.domain.models import ItemScheduleState, ScopeCounters
from cadence.domain.ports import ScheduleRepository

logger = logging.getLogger(__name__)


class DebouncedSaver:
    """
    Coalescing write-behind queue in front of a ScheduleRepository.

    Failed writes stay queued and are retried on the next flush. Nothing
    raised by the repository reaches the caller.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        delay: float = SAVE_DEBOUNCE_SECONDS,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self._repo = repository
        self._delay = delay
        self._timeout = timeout
        self._pending_states: dict[tuple[str, str], ItemScheduleState] = {}
        self._pending_counters: dict[str, ScopeCounters] = {}
        self._timer: asyncio.Task | None = None
        self._flushing: set[asyncio.Task] = set()
        self._lock: asyncio.Lock | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending_states) + len(self._pending_counters)

    def schedule_states(self, scope: str, states: Iterable[ItemScheduleState]) -> None:
        """Queue item states for saving; later writes replace earlier ones."""
        for state in states:
            self._pending_states[(scope, state.id)] = state
        self._arm()

    def schedule_counters(self, scope: str, counters: ScopeCounters) -> None:
        """Queue a snapshot of a scope's counters."""
        self._pending_counters[scope] = counters.copy()
        self._arm()

    def _arm(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: data stays pending until flush() or close()
            return

        # self._timer is only ever a task that is still sleeping
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = loop.create_task(self._flush_later())

    async def _flush_later(self) -> None:
        try:
            await asyncio.sleep(self._delay)
        except asyncio.CancelledError:
            return

        task = asyncio.current_task()
        if self._timer is task:
            self._timer = None
        self._flushing.add(task)
        try:
            await self.flush()
        finally:
            self._flushing.discard(task)

    async def flush(self) -> bool:
        """
        Write everything pending.

        Returns:
            True if every pending write succeeded.
        """
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            states, self._pending_states = self._pending_states, {}
            counters, self._pending_counters = self._pending_counters, {}
            if not states and not counters:
                return True

            by_scope: dict[str, list[ItemScheduleState]] = {}
            for (scope, _), state in states.items():
                by_scope.setdefault(scope, []).append(state)

            unsaved_states = dict(states)
            unsaved_counters = dict(counters)
            try:
                for scope, batch in by_scope.items():
                    if await self._write(self._repo.save_schedules(scope, batch), scope):
                        for state in batch:
                            del unsaved_states[(scope, state.id)]

                for scope, snapshot in counters.items():
                    if await self._write(self._repo.save_daily_counters(scope, snapshot), scope):
                        del unsaved_counters[scope]
            finally:
                # Newer pending data wins over a requeued snapshot
                for key, state in unsaved_states.items():
                    self._pending_states.setdefault(key, state)
                for scope, snapshot in unsaved_counters.items():
                    self._pending_counters.setdefault(scope, snapshot)

            ok = not unsaved_states and not unsaved_counters
            if ok:
                logger.debug(
                    f"Flushed {len(states)} state(s) and {len(counters)} counter set(s)"
                )
            return ok

    async def _write(self, operation, scope: str) -> bool:
        try:
            saved = await asyncio.wait_for(operation, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Save for scope {scope} timed out after {self._timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Save for scope {scope} failed, will retry: {e}")
            return False

        if not saved:
            logger.warning(f"Save for scope {scope} was rejected, will retry")
        return bool(saved)

    async def close(self) -> bool:
        """Stop the timer and flush whatever is pending."""
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
        if self._flushing:
            await asyncio.gather(*self._flushing)
        return await self.flush()
