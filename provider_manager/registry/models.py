"""Request models for provider registration."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class RegistrationStatus(str, Enum):
    """Outcome of an idempotent register-or-update call."""

    REGISTERED = "registered"
    UPDATED = "updated"


class ProviderSpec(BaseModel):
    """Registry-owned provider fields supplied by clients."""

    name: str = Field(..., min_length=1, max_length=255)
    service_type: str = Field(..., min_length=1, max_length=255)
    schema_version: str = Field(..., min_length=1, max_length=64)
    endpoint: str = Field(..., min_length=1, max_length=2048)

    model_config = {"extra": "ignore"}

    @field_validator("name", "service_type", "schema_version")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("endpoint")
    @classmethod
    def _validate_endpoint(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"endpoint '{v}' must start with http:// or https://")
        return v
