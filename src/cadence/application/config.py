import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cadence.domain.constants import (
    DEFAULT_LEARNING_STEPS,
    DEFAULT_MAX_REVIEWS_PER_DAY,
    DEFAULT_NEW_ITEMS_PER_DAY,
    DEFAULT_RELEARNING_STEPS,
    REQUEST_TIMEOUT,
    SAVE_DEBOUNCE_SECONDS,
)
from cadence.domain.models import ScopeLimits

logger = logging.getLogger(__name__)

CONFIG_FILES = [
    Path.home() / ".config/cadence/config.toml",
    Path.home() / ".cadence.toml",
]


def _sanitize_steps(value: Any, default: list[float], name: str) -> list[float]:
    """Drop non-positive or non-numeric steps, falling back to the default list."""
    if not isinstance(value, (list, tuple)) or not value:
        logger.warning(f"Invalid {name}, using default {default}")
        return list(default)

    valid = []
    for step in value:
        try:
            minutes = float(step)
        except (TypeError, ValueError):
            continue
        if minutes > 0:
            valid.append(minutes)

    if not valid:
        logger.warning(f"No valid steps in {name}, using default {default}")
        return list(default)
    if len(valid) != len(value):
        logger.warning(f"Some invalid steps in {name}, filtered to {valid}")
    return valid


class SchedulerParams(BaseModel):
    """
    Tunable parameters for the scheduling core and the item selector.

    Step lists are in minutes; intervals are in days.
    """

    learning_steps: list[float] = Field(default_factory=lambda: list(DEFAULT_LEARNING_STEPS))
    relearning_steps: list[float] = Field(
        default_factory=lambda: list(DEFAULT_RELEARNING_STEPS)
    )

    graduating_interval_days: int = Field(default=1, ge=1)
    easy_interval_days: int = Field(default=4, ge=1)

    starting_ease: float = Field(default=2.5, ge=1.3, le=5.0)
    minimum_ease: float = Field(default=1.3, ge=1.0, le=3.0)

    easy_bonus: float = Field(default=1.3, ge=1.0, le=3.0)
    hard_interval_factor: float = Field(default=0.5, gt=0.0, lt=1.0)
    easy_interval_factor: float = Field(default=1.3, ge=1.0, le=3.0)
    interval_modifier: float = Field(default=1.0, ge=0.1, le=3.0)

    lapse_recovery_factor: float = Field(default=0.2, ge=0.0, le=1.0)
    lapse_ease_penalty: float = Field(default=0.2, ge=0.0, lt=1.0)
    leech_threshold: int = Field(default=8, ge=1)
    leech_action: Literal["suspend", "flag_only"] = "suspend"

    new_item_order: Literal["fifo", "random"] = "fifo"
    review_ahead: bool = False
    bury_siblings: bool = False
    max_interval_days: int = Field(default=36500, ge=1)

    @field_validator("learning_steps", mode="before")
    @classmethod
    def sanitize_learning_steps(cls, v: Any) -> list[float]:
        return _sanitize_steps(v, DEFAULT_LEARNING_STEPS, "learning_steps")

    @field_validator("relearning_steps", mode="before")
    @classmethod
    def sanitize_relearning_steps(cls, v: Any) -> list[float]:
        return _sanitize_steps(v, DEFAULT_RELEARNING_STEPS, "relearning_steps")


class EngineConfig(BaseSettings):
    """
    Configuration model for Cadence.
    Supports loading from:
    1. Environment variables (CADENCE_*, nested with __)
    2. Config file (~/.config/cadence/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Persistence
    backend: Literal["auto", "http", "file"] = "auto"
    api_url: str | None = None
    api_token: str | None = None
    api_user: str | None = None
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/cadence")

    # Session
    timezone: str = "UTC"
    save_debounce_seconds: float = Field(default=SAVE_DEBOUNCE_SECONDS, ge=0.0)
    request_timeout: float = Field(default=REQUEST_TIMEOUT, gt=0.0)

    # Default per-scope limits
    new_items_per_day: int = Field(default=DEFAULT_NEW_ITEMS_PER_DAY, ge=0)
    max_reviews_per_day: int = DEFAULT_MAX_REVIEWS_PER_DAY

    params: SchedulerParams = Field(default_factory=SchedulerParams)

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = None
        for f in CONFIG_FILES:
            if f.exists():
                toml_file = f
                break

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    def limits_for(self, scope: str) -> ScopeLimits:
        """Default daily limits applied to a scope."""
        return ScopeLimits(
            scope=scope,
            new_items_per_day=self.new_items_per_day,
            max_reviews_per_day=self.max_reviews_per_day,
        )


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> EngineConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in EngineConfig
    2. ~/.config/cadence/config.toml (if exists)
    3. Environment variables (CADENCE_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return EngineConfig(**overrides)
