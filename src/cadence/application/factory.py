"""
Repository Factory
Centralizes the logic for selecting the persistence adapter.
"""

import logging
from pathlib import Path

from cadence.application.config import EngineConfig
from cadence.application.save_queue import DebouncedSaver
from cadence.application.study_service import StudyService
from cadence.domain.ports import FallbackCounterStore, ScheduleRepository
from cadence.infrastructure.adapters.file_store import FileScheduleRepository
from cadence.infrastructure.adapters.http_store import HttpScheduleRepository
from cadence.infrastructure.adapters.local_fallback import JsonFallbackStore

logger = logging.getLogger(__name__)

FALLBACK_FILE = "fallback_counters.json"


def _file_repository(config: EngineConfig, deck_name: str) -> FileScheduleRepository:
    return FileScheduleRepository(
        config.data_dir / f"{deck_name}.schedules.json", timezone=config.timezone
    )


def _http_repository(config: EngineConfig) -> HttpScheduleRepository:
    if not config.api_url:
        raise ValueError("backend 'http' requires api_url to be set")
    return HttpScheduleRepository(
        config.api_url,
        token=config.api_token,
        user_id=config.api_user,
        timeout=config.request_timeout,
        timezone=config.timezone,
    )


async def get_schedule_repository(
    config: EngineConfig, deck_name: str = "default"
) -> ScheduleRepository:
    """
    Returns the appropriate ScheduleRepository based on config and responsiveness.
    """
    # 1. Manual selection
    if config.backend == "http":
        return _http_repository(config)

    if config.backend == "file":
        return _file_repository(config, deck_name)

    # 2. Auto selection: prefer the API when it is configured, signed in and reachable
    if config.api_url:
        repo = _http_repository(config)
        if repo.is_authenticated and await repo.is_responsive():
            logger.info(f"Backend: HTTP ({config.api_url})")
            return repo
        await repo.close()

    logger.info(f"Backend: file ({config.data_dir})")
    return _file_repository(config, deck_name)


def get_fallback_store(config: EngineConfig) -> FallbackCounterStore:
    return JsonFallbackStore(Path(config.data_dir) / FALLBACK_FILE)


async def build_study_service(
    config: EngineConfig, scope: str, deck_name: str = "default"
) -> StudyService:
    """Wire a StudyService for one scope from resolved configuration."""
    repository = await get_schedule_repository(config, deck_name)
    return StudyService(
        repository,
        get_fallback_store(config),
        config.params,
        config.limits_for(scope),
        saver=DebouncedSaver(
            repository,
            delay=config.save_debounce_seconds,
            timeout=config.request_timeout,
        ),
        timezone=config.timezone,
    )
