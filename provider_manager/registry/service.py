"""Provider registry: registration, lookup, update and removal.

New providers always start ``ready`` with no failures and no scheduled
check, so the health monitor picks them up on its next scan.  The registry
never writes health fields.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple, Union

from provider_manager.errors import (
    InvalidProviderError,
    ProviderConflictError,
    ProviderNotFoundError,
)
from provider_manager.registry.models import ProviderSpec, RegistrationStatus
from provider_manager.store.base import ProviderStore
from provider_manager.store.models import HealthStatus, ProviderRecord

logger = logging.getLogger(__name__)

ProviderId = Union[str, uuid.UUID]


def parse_provider_id(value: ProviderId) -> uuid.UUID:
    """Parse *value* as a UUID, raising :class:`InvalidProviderError` if malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise InvalidProviderError("invalid provider ID format") from exc


class ProviderRegistry:
    """Business logic for provider management on top of a :class:`ProviderStore`."""

    def __init__(self, store: ProviderStore) -> None:
        self._store = store

    async def register_or_update(
        self,
        spec: ProviderSpec,
        provider_id: Optional[ProviderId] = None,
    ) -> Tuple[ProviderRecord, RegistrationStatus]:
        """Idempotent registration keyed by provider name.

        * Name unknown → a new provider is created (with *provider_id* if given).
        * Name known → the existing provider is updated, unless *provider_id*
          names a different provider (conflict).

        Raises:
            ProviderConflictError: name/id belong to different providers.
            InvalidProviderError: *provider_id* is not a UUID.
        """
        requested_id = parse_provider_id(provider_id) if provider_id is not None else None

        try:
            existing: Optional[ProviderRecord] = await self._store.get_by_name(spec.name)
        except ProviderNotFoundError:
            existing = None

        if existing is not None:
            if requested_id is not None and existing.id != requested_id:
                raise ProviderConflictError(
                    f"name '{spec.name}' already exists with a different provider ID"
                )
            updated = await self._apply(existing, spec)
            return updated, RegistrationStatus.UPDATED

        if requested_id is not None and await self._store.exists(requested_id):
            raise ProviderConflictError(f"provider with ID '{requested_id}' already exists")

        record = ProviderRecord(
            id=requested_id or uuid.uuid4(),
            name=spec.name,
            service_type=spec.service_type,
            schema_version=spec.schema_version,
            endpoint=spec.endpoint,
            health_status=HealthStatus.READY,
            consecutive_failures=0,
            next_health_check=None,
        )
        created = await self._store.create(record)
        logger.info("Created provider: %s (%s)", created.name, created.id)
        return created, RegistrationStatus.REGISTERED

    async def get(self, provider_id: ProviderId) -> ProviderRecord:
        return await self._store.get(parse_provider_id(provider_id))

    async def list(self, service_type: Optional[str] = None) -> List[ProviderRecord]:
        return await self._store.list(service_type or None)

    async def update(self, provider_id: ProviderId, spec: ProviderSpec) -> ProviderRecord:
        """Replace the registry fields of an existing provider.

        Raises:
            ProviderNotFoundError: no provider with that id.
            ProviderConflictError: the new name belongs to another provider.
        """
        existing = await self._store.get(parse_provider_id(provider_id))
        if spec.name != existing.name:
            try:
                other = await self._store.get_by_name(spec.name)
            except ProviderNotFoundError:
                other = None
            if other is not None and other.id != existing.id:
                raise ProviderConflictError(f"provider name '{spec.name}' already taken")
        return await self._apply(existing, spec)

    async def delete(self, provider_id: ProviderId) -> None:
        pid = parse_provider_id(provider_id)
        await self._store.delete(pid)
        logger.info("Deleted provider: %s", pid)

    async def _apply(self, existing: ProviderRecord, spec: ProviderSpec) -> ProviderRecord:
        changed = existing.model_copy(
            update={
                "name": spec.name,
                "service_type": spec.service_type,
                "schema_version": spec.schema_version,
                "endpoint": spec.endpoint,
            }
        )
        updated = await self._store.update(changed)
        logger.info("Updated provider: %s (%s)", updated.name, updated.id)
        return updated
