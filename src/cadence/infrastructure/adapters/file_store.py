"""
File Schedule Repository: infrastructure adapter for a local JSON document.

Implements ScheduleRepository for offline use and the CLI. The document
holds schedule rows bucketed by scope and today's counters per scope.
"""

import json
import logging
import os
from collections.abc import Iterable
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from cadence.domain.constants import DEFAULT_SCOPE
from cadence.domain.errors import PersistenceError
from cadence.domain.models import ItemScheduleState, ScopeCounters
from cadence.domain.ports import ScheduleRepository
from cadence.infrastructure.adapters.records import (
    DailyCounterRecord,
    ScheduleRecord,
    parse_rows,
)

logger = logging.getLogger(__name__)


class FileScheduleRepository(ScheduleRepository):
    """
    Stores schedules in a single JSON file.

    Layout:
        {"schedules": {scope: {item_id: row}}, "counters": {scope: row}}
    """

    def __init__(self, path: Path, timezone: str = "UTC"):
        self.path = Path(path)
        self.tz = ZoneInfo(timezone)

    def _today(self) -> date:
        return datetime.now(self.tz).date()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"schedules": {}, "counters": {}}
        try:
            with open(self.path, encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read {self.path}: {e}") from e

        if not isinstance(doc, dict):
            raise PersistenceError(f"Unexpected document in {self.path}")
        doc.setdefault("schedules", {})
        doc.setdefault("counters", {})
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

    async def load_schedules(
        self, scope: str, item_ids: Iterable[str]
    ) -> dict[str, ItemScheduleState]:
        ids = list(item_ids)
        doc = self._read()

        if scope == DEFAULT_SCOPE:
            rows = [row for bucket in doc["schedules"].values() for row in bucket.values()]
        else:
            rows = list(doc["schedules"].get(scope, {}).values())

        return parse_rows(rows, scope, ids, datetime.now(UTC))

    async def save_schedules(
        self, scope: str, states: Iterable[ItemScheduleState]
    ) -> bool:
        try:
            doc = self._read()
            for state in states:
                row = ScheduleRecord.from_state(state).model_dump(mode="json")
                doc["schedules"].setdefault(state.project_scope, {})[state.id] = row
            self._write(doc)
            return True
        except PersistenceError as e:
            logger.warning(f"Failed to save schedules for scope {scope}: {e}")
            return False

    async def load_daily_counters(self, scope: str) -> ScopeCounters:
        doc = self._read()
        raw = doc["counters"].get(scope)
        if not raw:
            return ScopeCounters()

        try:
            record = DailyCounterRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Malformed counters for scope {scope}, starting at zero: {e}")
            return ScopeCounters()

        # Yesterday's counters do not apply today
        if record.study_date != self._today():
            return ScopeCounters()
        return record.to_counters()

    async def save_daily_counters(self, scope: str, counters: ScopeCounters) -> bool:
        try:
            doc = self._read()
            record = DailyCounterRecord.from_counters(counters, self._today())
            doc["counters"][scope] = record.model_dump(mode="json")
            self._write(doc)
            return True
        except PersistenceError as e:
            logger.warning(f"Failed to save counters for scope {scope}: {e}")
            return False
