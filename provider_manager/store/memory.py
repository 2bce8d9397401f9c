"""In-memory provider store.

Keeps records in a dict guarded by an ``asyncio.Lock``.  Records handed out
are copies, so callers never mutate stored state directly.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from provider_manager.errors import ProviderConflictError, ProviderNotFoundError
from provider_manager.store.models import HealthStatus, ProviderRecord, as_utc, utcnow

logger = logging.getLogger(__name__)


class InMemoryProviderStore:
    """Dict-backed :class:`~provider_manager.store.base.ProviderStore`."""

    def __init__(self) -> None:
        self._providers: Dict[uuid.UUID, ProviderRecord] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        logger.info("Using in-memory provider store (records are not persisted).")

    async def close(self) -> None:
        pass

    # ── Registry CRUD ────────────────────────────────────────────────────

    def _name_taken(self, name: str, exclude: Optional[uuid.UUID] = None) -> bool:
        return any(p.name == name and p.id != exclude for p in self._providers.values())

    async def create(self, provider: ProviderRecord) -> ProviderRecord:
        async with self._lock:
            if provider.id in self._providers:
                raise ProviderConflictError(f"provider with ID '{provider.id}' already exists")
            if self._name_taken(provider.name):
                raise ProviderConflictError(f"provider name '{provider.name}' already taken")
            stored = provider.model_copy(deep=True)
            self._providers[stored.id] = stored
            return stored.model_copy(deep=True)

    async def get(self, provider_id: uuid.UUID) -> ProviderRecord:
        async with self._lock:
            provider = self._providers.get(provider_id)
            if provider is None:
                raise ProviderNotFoundError(provider_id)
            return provider.model_copy(deep=True)

    async def get_by_name(self, name: str) -> ProviderRecord:
        async with self._lock:
            for provider in self._providers.values():
                if provider.name == name:
                    return provider.model_copy(deep=True)
        raise ProviderNotFoundError(message=f"provider '{name}' not found")

    async def exists(self, provider_id: uuid.UUID) -> bool:
        async with self._lock:
            return provider_id in self._providers

    async def list(self, service_type: Optional[str] = None) -> List[ProviderRecord]:
        async with self._lock:
            providers = [
                p.model_copy(deep=True)
                for p in self._providers.values()
                if service_type is None or p.service_type == service_type
            ]
        providers.sort(key=lambda p: (p.create_time, str(p.id)))
        return providers

    async def update(self, provider: ProviderRecord) -> ProviderRecord:
        """Update registry fields only; health fields are left untouched."""
        async with self._lock:
            stored = self._providers.get(provider.id)
            if stored is None:
                raise ProviderNotFoundError(provider.id)
            if self._name_taken(provider.name, exclude=provider.id):
                raise ProviderConflictError(f"provider name '{provider.name}' already taken")
            stored.name = provider.name
            stored.service_type = provider.service_type
            stored.schema_version = provider.schema_version
            stored.endpoint = provider.endpoint
            stored.update_time = utcnow()
            return stored.model_copy(deep=True)

    async def delete(self, provider_id: uuid.UUID) -> None:
        async with self._lock:
            if self._providers.pop(provider_id, None) is None:
                raise ProviderNotFoundError(provider_id)

    # ── Health directory ─────────────────────────────────────────────────

    async def list_due_for_health_check(self, now: datetime) -> List[ProviderRecord]:
        now = as_utc(now)
        async with self._lock:
            return [p.model_copy(deep=True) for p in self._providers.values() if p.is_due(now)]

    async def update_health_status(
        self,
        provider_id: uuid.UUID,
        status: HealthStatus,
        consecutive_failures: int,
        next_check: datetime,
    ) -> None:
        async with self._lock:
            stored = self._providers.get(provider_id)
            if stored is None:
                raise ProviderNotFoundError(provider_id)
            stored.health_status = status
            stored.consecutive_failures = consecutive_failures
            stored.next_health_check = as_utc(next_check)
