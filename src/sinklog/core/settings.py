"""
Configuration models for sinklog using Pydantic v2 Settings.

Every field can be set from the environment with the ``SINKLOG_`` prefix and
``__`` as the nesting delimiter, e.g. ``SINKLOG_CORE__FLUSH_INTERVAL_SECONDS=2``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    SettingsConfigDict,
)


class CoreSettings(BaseModel):
    """Buffering, flushing and shutdown settings."""

    database_path: str = Field(
        default="sinklog.db",
        description="SQLite database file that receives flushed records",
    )
    flush_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Seconds between two checks of the buffer for pending records",
    )
    max_buffer_size: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Optional cap on pending records; when full the oldest record is "
            "evicted. Unbounded when unset"
        ),
    )
    console_echo: bool = Field(
        default=True,
        description="Mirror every appended record to stderr",
    )
    internal_logging_enabled: bool = Field(
        default=True,
        description="Emit JSON diagnostics to stderr for internal failures",
    )
    enable_metrics: bool = Field(
        default=False,
        description="Enable Prometheus-compatible metrics",
    )
    atexit_drain_enabled: bool = Field(
        default=True,
        description="Drain registered sinks when the interpreter exits",
    )
    atexit_drain_timeout_seconds: float | None = Field(
        default=None,
        gt=0.0,
        description="Give up waiting for an exit-time drain after this long",
    )
    signal_handler_enabled: bool = Field(
        default=False,
        description="Drain registered sinks on SIGTERM/SIGINT before exiting",
    )

    @field_validator("database_path")
    @classmethod
    def _ensure_database_path_non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("database_path must not be empty")
        return value


class Settings(BaseSettings):
    """Top-level configuration model."""

    core: CoreSettings = Field(default_factory=CoreSettings)

    model_config = SettingsConfigDict(
        env_prefix="SINKLOG_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
