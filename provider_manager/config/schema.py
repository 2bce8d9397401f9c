"""Pydantic configuration models for the Service Provider Manager.

Defines the validated config structure using the versioned v1 format.
Durations are stored as float seconds and accept either plain numbers or
unit strings such as ``"250ms"``, ``"10s"``, ``"5m"`` or ``"1m30s"``.
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.engine import URL

from provider_manager.constants import (
    DEFAULT_BASE_BACKOFF_INTERVAL,
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_HOST,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_BACKOFF_INTERVAL,
    DEFAULT_MAX_CONSECUTIVE_FAILURES,
    DEFAULT_PORT,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_SQLITE_PATH,
)

logger = logging.getLogger(__name__)

# ── Duration parsing ─────────────────────────────────────────────────────

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Convert a duration value to seconds.

    Numbers are taken as seconds.  Strings are either a bare number or a
    sequence of ``<number><unit>`` parts with units ``ms``, ``s``, ``m``, ``h``.
    """
    if isinstance(value, bool):
        raise ValueError("duration must be a number or a string like '10s'")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, timedelta):
        return value.total_seconds()
    if not isinstance(value, str):
        raise ValueError("duration must be a number or a string like '10s'")

    text = value.strip().lower()
    if not text:
        raise ValueError("duration must not be empty")
    try:
        return float(text)
    except ValueError:
        pass

    pos = 0
    total = 0.0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration '{value}' (expected e.g. '500ms', '10s', '5m')")
    return total


# ── Health check ─────────────────────────────────────────────────────────


class HealthCheckConfig(BaseModel):
    """Provider health monitoring settings (all durations in seconds)."""

    interval: float = Field(
        default=DEFAULT_CHECK_INTERVAL,
        gt=0,
        description="Steady-state period between health check scans.",
    )
    timeout: float = Field(
        default=DEFAULT_PROBE_TIMEOUT,
        gt=0,
        description="Timeout for a single provider probe.",
    )
    max_consecutive_failures: int = Field(
        default=DEFAULT_MAX_CONSECUTIVE_FAILURES,
        ge=1,
        description="Consecutive failures before a provider becomes not_ready.",
    )
    base_backoff_interval: float = Field(
        default=DEFAULT_BASE_BACKOFF_INTERVAL,
        gt=0,
        description="First delay applied once a provider is not_ready.",
    )
    max_backoff_interval: float = Field(
        default=DEFAULT_MAX_BACKOFF_INTERVAL,
        gt=0,
        description="Upper bound for the backoff delay.",
    )

    model_config = {"extra": "forbid"}

    @field_validator(
        "interval",
        "timeout",
        "base_backoff_interval",
        "max_backoff_interval",
        mode="before",
    )
    @classmethod
    def _parse_duration(cls, v: Any) -> float:
        return parse_duration(v)

    @model_validator(mode="after")
    def _check_bounds(self) -> "HealthCheckConfig":
        if self.max_backoff_interval < self.base_backoff_interval:
            raise ValueError("max_backoff_interval must be >= base_backoff_interval")
        if self.timeout >= self.interval:
            raise ValueError("timeout must be shorter than interval")
        return self


# ── Database ─────────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """Provider store settings."""

    type: str = Field(
        default="sqlite",
        description="Store backend: 'sqlite', 'pgsql' or 'memory'.",
    )
    host: str = "localhost"
    port: int = Field(default=5432, ge=1, le=65535)
    name: str = Field(default="service-provider", min_length=1)
    user: str = ""
    password: str = ""
    path: str = Field(
        default=DEFAULT_SQLITE_PATH,
        description="Database file for the sqlite backend (':memory:' allowed).",
    )
    echo: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, v: Any) -> str:
        """Unknown store types fall back to sqlite."""
        value = str(v).strip().lower() if v is not None else "sqlite"
        if value not in ("sqlite", "pgsql", "memory"):
            logger.warning("Invalid database type %r, defaulting to sqlite", v)
            return "sqlite"
        return value

    @property
    def url(self) -> str:
        """SQLAlchemy async URL for the configured backend."""
        if self.type == "pgsql":
            url = URL.create(
                "postgresql+asyncpg",
                username=self.user or None,
                password=self.password or None,
                host=self.host,
                port=self.port,
                database=self.name,
            )
        else:
            url = URL.create("sqlite+aiosqlite", database=self.path)
        # credentials are percent-escaped in the rendered form
        return url.render_as_string(hide_password=False)


# ── Server settings ─────────────────────────────────────────────────────


class ServerSettings(BaseModel):
    """HTTP server settings (host, port, log level)."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    log_level: Literal["debug", "info", "warning", "error", "critical"] = Field(
        default=DEFAULT_LOG_LEVEL.lower(),  # type: ignore[arg-type]
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _lower_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v


# ── Top-level config ────────────────────────────────────────────────────


class ManagerConfig(BaseModel):
    """Top-level validated configuration.

    Supports version ``"1"`` format::

        version: "1"
        server:
          port: 8080
        database:
          type: sqlite
        health_check:
          interval: 10s
          max_consecutive_failures: 3
    """

    version: str = "1"
    server: ServerSettings = Field(default_factory=ServerSettings)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig)

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, v: Any) -> Optional[str]:
        return str(v) if v is not None else v
