"""Pydantic configuration models for monsync."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class SettleConfig(BaseModel):
    """Polling policy used while waiting for writes to become visible.

    The match counts are empirical; raise them if a remote is slow to
    rebuild collections.
    """

    backoff_floor_seconds: float = Field(default=0.5, ge=0.05, le=10.0)
    backoff_ceiling_seconds: float = Field(default=3.0, ge=0.1, le=60.0)
    required_matches: int = Field(default=3, ge=1, le=20)
    collection_required_matches: int = Field(default=5, ge=1, le=20)
    nested_required_matches: int = Field(default=7, ge=1, le=20)
    pause_required_matches: int = Field(default=3, ge=1, le=20)

    @field_validator("backoff_ceiling_seconds")
    @classmethod
    def validate_ceiling(cls, v: float, info: Any) -> float:
        """Validate ceiling is not below the floor."""
        if "backoff_floor_seconds" in info.data and v < info.data["backoff_floor_seconds"]:
            raise ValueError("backoff_ceiling_seconds must be >= backoff_floor_seconds")
        return v


class TimeoutsConfig(BaseModel):
    """Per-operation settle budgets in seconds."""

    create_seconds: float = Field(default=60.0, ge=1.0, le=3600.0)
    update_seconds: float = Field(default=120.0, ge=1.0, le=3600.0)
    update_extended_seconds: float = Field(default=240.0, ge=1.0, le=3600.0)
    pause_seconds: float = Field(default=90.0, ge=1.0, le=3600.0)
    delete_seconds: float = Field(default=120.0, ge=1.0, le=3600.0)
    delete_backoff_ceiling_seconds: float = Field(default=10.0, ge=0.1, le=120.0)


class RetryConfig(BaseModel):
    """Retry policy for idempotent remote calls (get, delete)."""

    max_tries: int = Field(default=3, ge=1, le=10)
    max_time_seconds: float = Field(default=30.0, ge=1.0, le=600.0)


class MonitorDefaultsConfig(BaseModel):
    """Values sent when the user leaves a defaulted field out."""

    timeout_seconds: int = Field(default=30, ge=1, le=60)


class StorageConfig(BaseModel):
    """Persisted state storage configuration."""

    data_directory: Path = Field(default_factory=lambda: Path("~/.monsync").expanduser())
    state_db_name: str = "state.db"

    @field_validator("data_directory", mode="before")
    @classmethod
    def expand_path(cls, v: Path | str) -> Path:
        """Expand user path and resolve to absolute."""
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser().resolve()

    @property
    def state_db_path(self) -> Path:
        return self.data_directory / self.state_db_name


class LoggingConfig(BaseModel):
    """Logging configuration for loguru."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None
    rotation: str = "10 MB"
    retention: str = "7 days"


class Config(BaseSettings):
    """Root configuration for monsync."""

    settle: SettleConfig = Field(default_factory=SettleConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    defaults: MonitorDefaultsConfig = Field(default_factory=MonitorDefaultsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "MONSYNC_",
        "env_nested_delimiter": "__",
    }
