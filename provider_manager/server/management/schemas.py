"""Pydantic response schemas for the management API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# ── /health ──────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str = Field(description="ok | unavailable")
    state: str
    version: str = ""
    uptime_seconds: Optional[float] = None


# ── /providers ──────────────────────────────────────────────────────────


class ProviderResponse(BaseModel):
    id: str
    name: str
    service_type: str
    schema_version: str
    endpoint: str
    health_status: str
    consecutive_failures: int = 0
    next_health_check: Optional[str] = None  # ISO-8601
    create_time: str
    update_time: str
    status: Optional[str] = Field(default=None, description="registered | updated")


class ProvidersResponse(BaseModel):
    providers: List[ProviderResponse] = Field(default_factory=list)


# ── /monitor ────────────────────────────────────────────────────────────


class MonitorConfig(BaseModel):
    interval: float
    timeout: float
    max_consecutive_failures: int
    base_backoff_interval: float
    max_backoff_interval: float


class MonitorResponse(BaseModel):
    running: bool = False
    scans: int = 0
    last_scan_at: Optional[str] = None  # ISO-8601
    config: MonitorConfig
    last_scan: Optional[Dict[str, Any]] = None


# ── /events ─────────────────────────────────────────────────────────────


class EventsResponse(BaseModel):
    events: List[Dict[str, Any]] = Field(default_factory=list)


# ── Errors ──────────────────────────────────────────────────────────────


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Optional[List[Dict[str, Any]]] = None
