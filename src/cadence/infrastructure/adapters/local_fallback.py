"""
Local fallback record for daily counters.

A single date-keyed JSON record, used when the primary repository is
unreachable or the caller is not signed in.
"""

import json
import logging
from datetime import date
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cadence.domain.models import ScopeCounters
from cadence.domain.ports import FallbackCounterStore

logger = logging.getLogger(__name__)


class FallbackRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: str = Field(alias="date")
    new_items_graded: int = Field(default=0, alias="newItemsGraded")
    reviews_completed: int = Field(default=0, alias="reviewsCompleted")


class JsonFallbackStore(FallbackCounterStore):
    """Keeps one {date, newItemsGraded, reviewsCompleted} record on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> FallbackRecord | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                return FallbackRecord.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable fallback record {self.path}: {e}")
            return None

    def load(self, day: date) -> ScopeCounters | None:
        record = self._read()
        if record is None or record.day != day.isoformat():
            return None
        return ScopeCounters(
            new_items_graded=max(0, record.new_items_graded),
            reviews_completed=max(0, record.reviews_completed),
        )

    def save(self, day: date, counters: ScopeCounters) -> None:
        record = FallbackRecord(
            day=day.isoformat(),
            new_items_graded=counters.new_items_graded,
            reviews_completed=counters.reviews_completed,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(record.model_dump(by_alias=True), f)

    def clear(self, day: date) -> None:
        record = self._read()
        if record is not None and record.day == day.isoformat():
            self.path.unlink(missing_ok=True)
            logger.debug(f"Cleared fallback record for {record.day}")
