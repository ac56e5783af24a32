import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from pydantic import ValidationError

from cadence.domain.constants import DEFAULT_SCOPE, REQUEST_TIMEOUT
from cadence.domain.errors import PersistenceError
from cadence.domain.models import ItemScheduleState, ScopeCounters
from cadence.domain.ports import ScheduleRepository
from cadence.infrastructure.adapters.records import (
    DailyCounterRecord,
    ScheduleRecord,
    parse_rows,
)


class HttpScheduleRepository(ScheduleRepository):
    """Repository backed by the remote REST API (bearer token auth)."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        user_id: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        timezone: str = "UTC",
    ):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.user_id = user_id
        self.timeout = timeout
        self._client = client
        self.tz = ZoneInfo(timezone)
        self.logger.debug(
            f"HttpScheduleRepository initialized with url={self.base_url} "
            f"(authenticated={self.is_authenticated})"
        )

    def _today(self) -> date:
        return datetime.now(self.tz).date()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user_id)

    async def is_responsive(self) -> bool:
        """Check if the backend answers at all."""
        try:
            client = self._get_client()
            resp = await client.get(f"{self.base_url}/srs/states", timeout=5.0)
            return resp.status_code < 500
        except Exception:
            return False

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
            if self.user_id:
                headers["x-user-id"] = self.user_id
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._get_client().request(method, f"{self.base_url}{path}", **kwargs)
            resp.raise_for_status()
            data = resp.json() if resp.content else None
        except httpx.HTTPError as e:
            self.logger.error(f"{method} {path} failed: {e}")
            raise PersistenceError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"{method} {path} returned invalid JSON") from e

        if isinstance(data, dict) and data.get("error"):
            raise PersistenceError(str(data["error"]))
        return data

    async def load_schedules(
        self, scope: str, item_ids: Iterable[str]
    ) -> dict[str, ItemScheduleState]:
        ids = list(item_ids)
        now = datetime.now(UTC)
        if not ids:
            return {}
        if not self.is_authenticated:
            self.logger.info("Not authenticated; using default schedules")
            return parse_rows([], scope, ids, now)

        params = {"userId": self.user_id}
        if scope != DEFAULT_SCOPE:
            params["projectId"] = scope

        rows = await self._request("GET", "/srs/states", params=params)
        if not isinstance(rows, list):
            raise PersistenceError("Unexpected response from /srs/states")
        return parse_rows(rows, scope, ids, now)

    async def save_schedules(
        self, scope: str, states: Iterable[ItemScheduleState]
    ) -> bool:
        if not self.is_authenticated:
            return False

        ok = True
        for state in states:
            row = ScheduleRecord.from_state(state).model_dump(mode="json")
            row["user_id"] = self.user_id
            try:
                await self._request("POST", "/srs/upsert", json={"state": row})
            except PersistenceError as e:
                self.logger.warning(f"Failed to save schedule for {state.id}: {e}")
                ok = False
        return ok

    async def load_daily_counters(self, scope: str) -> ScopeCounters:
        if not self.is_authenticated:
            raise PersistenceError("Not authenticated")

        data = await self._request("GET", f"/projects/{scope}/daily-stats")
        try:
            return DailyCounterRecord.model_validate(data or {}).to_counters()
        except ValidationError as e:
            raise PersistenceError(f"Malformed daily stats for scope {scope}") from e

    async def save_daily_counters(self, scope: str, counters: ScopeCounters) -> bool:
        if not self.is_authenticated:
            return False

        today = self._today()
        body = DailyCounterRecord.from_counters(counters, today).model_dump(mode="json")
        try:
            await self._request("POST", f"/projects/{scope}/daily-stats", json=body)
            return True
        except PersistenceError as e:
            self.logger.warning(f"Failed to save daily counters for scope {scope}: {e}")
            return False

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
