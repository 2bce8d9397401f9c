"""Pydantic models for provider records.

A :class:`ProviderRecord` carries the registry fields (name, service type,
schema version, endpoint) and the health fields owned by the health
monitor (status, consecutive failures, next check time).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalise *value* to an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class HealthStatus(str, Enum):
    """Readiness of a provider as seen by the health monitor."""

    READY = "ready"
    NOT_READY = "not_ready"


class ProviderRecord(BaseModel):
    """A registered service provider."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str
    service_type: str
    schema_version: str
    endpoint: str
    create_time: datetime = Field(default_factory=utcnow)
    update_time: datetime = Field(default_factory=utcnow)

    # Health check fields
    health_status: HealthStatus = HealthStatus.READY
    consecutive_failures: int = Field(default=0, ge=0)
    next_health_check: Optional[datetime] = None

    def is_due(self, now: datetime) -> bool:
        """Whether the provider should be probed at *now* (inclusive boundary)."""
        return self.next_health_check is None or self.next_health_check <= now

    def to_dict(self) -> dict:
        """JSON-ready snapshot for the management API."""
        return {
            "id": str(self.id),
            "name": self.name,
            "service_type": self.service_type,
            "schema_version": self.schema_version,
            "endpoint": self.endpoint,
            "health_status": self.health_status.value,
            "consecutive_failures": self.consecutive_failures,
            "next_health_check": (
                self.next_health_check.isoformat() if self.next_health_check else None
            ),
            "create_time": self.create_time.isoformat(),
            "update_time": self.update_time.isoformat(),
        }
