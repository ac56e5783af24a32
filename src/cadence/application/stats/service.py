"""
Deck statistics service: application layer orchestrator.

Coordinates loading schedules from the repository and summarizing them.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from cadence.application.config import SchedulerParams
from cadence.application.lifecycle import initialize_session, load_items, session_scopes
from cadence.domain.models import ScopeLimits
from cadence.domain.ports import FallbackCounterStore, ScheduleRepository

from .metrics_calculator import ScopeOverview, SessionStatsCalculator, StudyStats

logger = logging.getLogger(__name__)


@dataclass
class DeckReport:
    """Snapshot of one scope for reporting."""

    scope: str
    study: StudyStats
    overview: dict[str, ScopeOverview] = field(default_factory=dict)
    leeches: list[str] = field(default_factory=list)


class DeckStatsService:
    """
    Application service for reporting on stored schedules.

    Depends on the ScheduleRepository abstraction, not concrete adapters.
    """

    def __init__(
        self,
        repository: ScheduleRepository,
        fallback: FallbackCounterStore | None = None,
        calculator: SessionStatsCalculator | None = None,
        params: SchedulerParams | None = None,
    ):
        """
        Args:
            repository: The repository (port) holding schedule state.
            fallback: Local counter record used when the repository is unavailable.
            calculator: Optional custom calculator; uses default if not provided.
            params: Scheduler parameters; defaults if not provided.
        """
        self._repo = repository
        self._fallback = fallback
        self._calc = calculator or SessionStatsCalculator()
        self._params = params or SchedulerParams()

    async def report(
        self,
        item_ids: list[str],
        limits: ScopeLimits,
        now: datetime,
        today: date,
    ) -> DeckReport:
        """
        Load schedules and today's counters, then summarize them.

        Args:
            item_ids: Items belonging to the deck.
            limits: Daily limits of the scope being reported on.
            now: Current time.
            today: Current calendar day in the configured time zone.
        """
        if not item_ids:
            logger.info("No items to report on")

        items = await load_items(
            self._repo, limits.scope, item_ids, now, self._params.starting_ease
        )
        session = await initialize_session(
            self._repo, self._fallback, session_scopes(limits.scope, items), today
        )

        return DeckReport(
            scope=limits.scope,
            study=self._calc.study_stats(items, session, limits, now),
            overview=self._calc.scope_overview(items, now),
            leeches=self._calc.leeches(items),
        )
