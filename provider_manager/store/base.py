"""Store interfaces.

:class:`ProviderDirectory` is the narrow view the health monitor needs:
list the providers that are due and write back their health fields.
:class:`ProviderStore` adds the CRUD operations used by the registry.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable

from provider_manager.store.models import HealthStatus, ProviderRecord


@runtime_checkable
class ProviderDirectory(Protocol):
    """Persistence consumed by the health monitor."""

    async def list_due_for_health_check(self, now: datetime) -> List[ProviderRecord]:
        """Providers whose ``next_health_check`` is null or ``<= now``."""
        ...

    async def update_health_status(
        self,
        provider_id: uuid.UUID,
        status: HealthStatus,
        consecutive_failures: int,
        next_check: datetime,
    ) -> None:
        """Atomically write the three health fields.

        Raises :class:`~provider_manager.errors.ProviderNotFoundError` if the
        provider no longer exists.
        """
        ...


@runtime_checkable
class ProviderStore(ProviderDirectory, Protocol):
    """Full provider persistence (registry CRUD + health directory)."""

    async def initialize(self) -> None: ...

    async def close(self) -> None: ...

    async def create(self, provider: ProviderRecord) -> ProviderRecord: ...

    async def get(self, provider_id: uuid.UUID) -> ProviderRecord: ...

    async def get_by_name(self, name: str) -> ProviderRecord: ...

    async def exists(self, provider_id: uuid.UUID) -> bool: ...

    async def list(self, service_type: Optional[str] = None) -> List[ProviderRecord]: ...

    async def update(self, provider: ProviderRecord) -> ProviderRecord: ...

    async def delete(self, provider_id: uuid.UUID) -> None: ...
