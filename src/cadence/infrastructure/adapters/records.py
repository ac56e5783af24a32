"""
Wire records for stored schedule rows and daily counters.

Rows use snake_case column names. Malformed rows never abort a load: the
offending item falls back to a default New-phase state.
"""

import logging
from datetime import UTC, date, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from cadence.domain.models import ItemScheduleState, Phase, ScopeCounters

logger = logging.getLogger(__name__)


class ScheduleRecord(BaseModel):
    """One row of persisted schedule state."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    card_id: str
    project_id: str
    state: Phase = Phase.NEW
    interval: int = Field(default=0, ge=0, validation_alias=AliasChoices("interval", "card_interval"))
    ease: float = Field(default=2.5, gt=0)
    due: datetime
    last_reviewed: datetime | None = None
    repetitions: int = Field(default=0, ge=0)
    lapses: int = Field(default=0, ge=0)
    learning_step: int = Field(default=0, ge=0)
    is_leech: bool = False
    is_suspended: bool = False
    note_id: str | None = None

    @classmethod
    def from_state(cls, state: ItemScheduleState) -> "ScheduleRecord":
        return cls(
            card_id=state.id,
            project_id=state.project_scope,
            state=state.phase,
            interval=state.interval_days,
            ease=state.ease_factor,
            due=state.due_at,
            last_reviewed=state.last_graded_at,
            repetitions=state.total_repetitions,
            lapses=state.lapse_count,
            learning_step=state.learning_step_index,
            is_leech=state.is_leech,
            is_suspended=state.is_suspended,
            note_id=state.group_key,
        )

    def to_state(self) -> ItemScheduleState:
        return ItemScheduleState(
            id=self.card_id,
            project_scope=self.project_id,
            phase=self.state,
            interval_days=self.interval,
            ease_factor=self.ease,
            due_at=_aware(self.due),
            last_graded_at=_aware(self.last_reviewed) if self.last_reviewed else None,
            total_repetitions=self.repetitions,
            lapse_count=self.lapses,
            learning_step_index=self.learning_step,
            is_leech=self.is_leech,
            is_suspended=self.is_suspended,
            group_key=self.note_id,
        )


class DailyCounterRecord(BaseModel):
    """One row of per-day progress for a scope."""

    model_config = ConfigDict(extra="ignore")

    study_date: date | None = None
    new_cards_studied: int = 0
    reviews_completed: int = 0

    @classmethod
    def from_counters(cls, counters: ScopeCounters, day: date | None = None) -> "DailyCounterRecord":
        return cls(
            study_date=day,
            new_cards_studied=counters.new_items_graded,
            reviews_completed=counters.reviews_completed,
        )

    def to_counters(self) -> ScopeCounters:
        return ScopeCounters(
            new_items_graded=max(0, self.new_cards_studied),
            reviews_completed=max(0, self.reviews_completed),
        )


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_rows(
    rows: list[dict],
    scope: str,
    item_ids: list[str],
    now: datetime,
) -> dict[str, ItemScheduleState]:
    """
    Convert stored rows into states for exactly the requested ids.

    Ids with no row, or with a row that fails validation, get a default
    New-phase state.
    """
    wanted = set(item_ids)
    found: dict[str, ItemScheduleState] = {}

    for row in rows:
        card_id = str(row.get("card_id", "")) if isinstance(row, dict) else ""
        if card_id not in wanted:
            continue
        try:
            found[card_id] = ScheduleRecord.model_validate(row).to_state()
        except ValidationError as e:
            logger.warning(
                f"Malformed schedule record for {card_id}, using defaults: "
                f"{e.error_count()} error(s)"
            )

    return {
        item_id: found.get(item_id) or ItemScheduleState.new(item_id, scope, now)
        for item_id in item_ids
    }
