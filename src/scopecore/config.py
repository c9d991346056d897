"""Configuration contract for scopecore.

This module provides Pydantic-validated configuration models for the rule
engine: logging, where each scope's settings document lives, the fixed area
set, and the storage backend.

Direct os.environ/os.getenv usage is FORBIDDEN outside
``load_config_from_env()``. Everything else receives a ScopeCoreConfig.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

_TRUTHY = ("true", "1", "yes", "on")


def _home() -> Path:
    return Path.home()


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AreaDefinition(BaseModel):
    """One named area in the Global -> Area -> Project hierarchy.

    Attributes:
        name: Area identifier used in scope ids (``area:<name>``).
        label: Display label.
        base_path: Directory whose visible subdirectories are the area's projects.
        settings_path: Settings document holding the area-level allow list.
    """

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1)
    label: str = ""
    base_path: Path
    settings_path: Path

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Area names end up inside scope ids; ':' and '/' would make them ambiguous."""
        if ":" in v or "/" in v or v != v.strip():
            raise ValueError(f"Invalid area name: {v!r}")
        return v

    @model_validator(mode="after")
    def default_label(self) -> "AreaDefinition":
        if not self.label:
            self.label = self.name.capitalize()
        return self

    @classmethod
    def under_home(cls, name: str, label: str = "", home: Path | None = None) -> "AreaDefinition":
        """Build the conventional layout: ``~/<name>`` projects, ``~/.claude-<name>`` settings."""
        root = home or _home()
        return cls(
            name=name,
            label=label,
            base_path=root / name,
            settings_path=root / f".claude-{name}" / "settings.json",
        )


def default_areas(home: Path | None = None) -> list[AreaDefinition]:
    return [
        AreaDefinition.under_home("bellwether", "Bellwether", home),
        AreaDefinition.under_home("sophia", "Sophia", home),
        AreaDefinition.under_home("personal", "Personal", home),
    ]


class ScopeCoreConfig(BaseModel):
    """Configuration for the permission rule engine.

    RULE: All settings MUST come through this config object.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Scope documents
    global_settings_path: Path = Field(
        default_factory=lambda: _home() / ".claude" / "settings.json",
        description="Settings document for the global scope",
    )
    areas: list[AreaDefinition] = Field(
        default_factory=default_areas,
        description="Fixed, ordered set of areas",
    )
    project_settings_relpath: str = Field(
        default=".claude/settings.json",
        description="Settings document path relative to a project directory",
    )
    category_store_path: Path = Field(
        default_factory=lambda: _home() / ".claude" / "scopecore-categories.json",
        description="JSON document holding custom rule -> category mappings",
    )
    request_log_path: Path = Field(
        default_factory=lambda: _home() / "personal" / "flywheel-gsd" / "permissions" / "permission-requests.jsonl",
        description="JSONL log of permission prompts raised by the agent",
    )

    # Storage backend
    store_backend: Literal["json", "redis"] = Field(
        default="json",
        description="Where scope documents live: json files or Redis keys",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (e.g., redis://localhost:6379/0)",
    )
    redis_prefix: str = Field(
        default="scopecore",
        description="Key prefix for Redis-backed documents",
    )

    # Cascade fan-out
    cascade_workers: int = Field(
        default=1,
        ge=1,
        description="Threads used for descendant writes during a cascade (1 = sequential)",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("areas")
    @classmethod
    def validate_unique_areas(cls, v: list[AreaDefinition]) -> list[AreaDefinition]:
        names = [a.name for a in v]
        if len(names) != len(set(names)):
            raise ValueError(f"Area names must be unique, got {names}")
        return v

    @model_validator(mode="after")
    def validate_backend(self) -> "ScopeCoreConfig":
        if self.store_backend == "redis" and not self.redis_url:
            raise ValueError("store_backend='redis' requires redis_url")
        return self

    @property
    def area_names(self) -> tuple[str, ...]:
        return tuple(a.name for a in self.areas)

    def get_area(self, name: str) -> AreaDefinition | None:
        for area in self.areas:
            if area.name == name:
                return area
        return None

    model_config = {
        "extra": "forbid",  # Prevent accidental extra fields
    }


def load_config_from_env() -> ScopeCoreConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL
    - SCOPECORE_HOME: Base directory for default paths (default: user home)
    - SCOPECORE_GLOBAL_SETTINGS: Global settings document path
    - SCOPECORE_AREAS: Comma-separated area names (default: bellwether,sophia,personal)
    - SCOPECORE_CATEGORY_STORE: Custom category mapping document path
    - SCOPECORE_REQUEST_LOG: Permission request log path
    - SCOPECORE_STORE_BACKEND: json | redis
    - SCOPECORE_REDIS_PREFIX: Key prefix for the Redis backend
    - SCOPECORE_CASCADE_WORKERS: Thread fan-out for cascades

    Returns:
        ScopeCoreConfig instance with values from environment or defaults.
    """
    import os

    home = Path(os.getenv("SCOPECORE_HOME", "") or _home()).expanduser()

    area_names_raw = os.getenv("SCOPECORE_AREAS", "")
    area_names = [a.strip() for a in area_names_raw.split(",") if a.strip()]
    areas = [AreaDefinition.under_home(name, home=home) for name in area_names] if area_names else default_areas(home)

    global_settings = os.getenv("SCOPECORE_GLOBAL_SETTINGS")
    category_store = os.getenv("SCOPECORE_CATEGORY_STORE")
    request_log = os.getenv("SCOPECORE_REQUEST_LOG")

    return ScopeCoreConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
        global_settings_path=Path(global_settings).expanduser()
        if global_settings
        else home / ".claude" / "settings.json",
        areas=areas,
        category_store_path=Path(category_store).expanduser()
        if category_store
        else home / ".claude" / "scopecore-categories.json",
        request_log_path=Path(request_log).expanduser()
        if request_log
        else home / "personal" / "flywheel-gsd" / "permissions" / "permission-requests.jsonl",
        store_backend=os.getenv("SCOPECORE_STORE_BACKEND", "json"),
        redis_url=os.getenv("REDIS_URL"),
        redis_prefix=os.getenv("SCOPECORE_REDIS_PREFIX", "scopecore"),
        cascade_workers=int(os.getenv("SCOPECORE_CASCADE_WORKERS", "1")),
    )


__all__ = [
    "AreaDefinition",
    "LogLevel",
    "ScopeCoreConfig",
    "default_areas",
    "load_config_from_env",
]
