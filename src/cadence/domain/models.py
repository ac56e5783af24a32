"""
Domain models for scheduling state and session bookkeeping.

These are pure data structures with no I/O or external dependencies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum

from .constants import DEFAULT_SCOPE


class Phase(str, Enum):
    """Coarse scheduling stage of an item."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"

    @property
    def is_learning(self) -> bool:
        return self in (Phase.LEARNING, Phase.RELEARNING)


class Grade(IntEnum):
    """Reviewer response to an item (0=Again, 1=Hard, 2=Good, 3=Easy)."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @classmethod
    def parse(cls, value: int | str) -> Grade:
        """
        Convert raw presentation-layer input into a Grade.

        Raises:
            ValueError: if the value is not an integer in 0..3.
        """
        if isinstance(value, bool):
            raise ValueError(f"Invalid grade: {value!r}")
        if isinstance(value, str):
            value = value.strip()
            if not value.isdigit():
                raise ValueError(f"Invalid grade: {value!r}")
            value = int(value)
        return cls(value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding up."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class ItemScheduleState:
    """
    Scheduling state of a single learning item.

    Attributes:
        id: Item identifier.
        project_scope: Scope (project) the item belongs to.
        phase: Current scheduling phase.
        interval_days: Current interval in days (meaningful once in REVIEW).
        ease_factor: Interval growth multiplier.
        due_at: When the item is next due (timezone-aware).
        last_graded_at: When the item was last graded, None if never.
        total_repetitions: Number of graded responses.
        lapse_count: Number of AGAIN grades while in REVIEW.
        learning_step_index: Position within the learning/relearning steps.
        group_key: Optional key linking sibling items.
    """

    id: str
    project_scope: str
    phase: Phase
    interval_days: int
    ease_factor: float
    due_at: datetime
    last_graded_at: datetime | None = None
    total_repetitions: int = 0
    lapse_count: int = 0
    learning_step_index: int = 0
    is_leech: bool = False
    is_suspended: bool = False
    group_key: str | None = None

    @classmethod
    def new(
        cls,
        item_id: str,
        scope: str,
        now: datetime,
        group_key: str | None = None,
        ease: float = 2.5,
    ) -> ItemScheduleState:
        """Default state for an item that has never been scheduled."""
        return cls(
            id=item_id,
            project_scope=scope,
            phase=Phase.NEW,
            interval_days=0,
            ease_factor=ease,
            due_at=now,
            group_key=group_key,
        )

    @property
    def is_learning(self) -> bool:
        return self.phase.is_learning


@dataclass
class ScopeCounters:
    """Daily progress for one scope."""

    new_items_graded: int = 0
    reviews_completed: int = 0

    def is_zero(self) -> bool:
        return self.new_items_graded <= 0 and self.reviews_completed <= 0

    def copy(self) -> ScopeCounters:
        return ScopeCounters(self.new_items_graded, self.reviews_completed)


@dataclass(frozen=True)
class ScopeLimits:
    """
    Daily quotas for one scope.

    A max_reviews_per_day of 0 or less means reviews are unlimited.
    """

    scope: str = DEFAULT_SCOPE
    new_items_per_day: int = 20
    max_reviews_per_day: int = 200

    @property
    def reviews_unlimited(self) -> bool:
        return self.max_reviews_per_day <= 0

    def includes(self, item: ItemScheduleState) -> bool:
        """Whether an item falls inside this scope."""
        return self.scope == DEFAULT_SCOPE or item.project_scope == self.scope


@dataclass(frozen=True)
class UndoEntry:
    """Snapshot taken before a graded response was applied."""

    item_id: str
    prior_state: ItemScheduleState
    grade: Grade
    graded_at: datetime
    scope: str


@dataclass
class GradeOutcome:
    """Result of grading an item through the study service."""

    previous: ItemScheduleState
    updated: ItemScheduleState
    leech_flagged: bool = False
    suppressed: list[str] = field(default_factory=list)
