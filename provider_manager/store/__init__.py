"""Provider persistence: record model, interfaces and store backends."""

from provider_manager.config.schema import DatabaseConfig
from provider_manager.store.base import ProviderDirectory, ProviderStore
from provider_manager.store.memory import InMemoryProviderStore
from provider_manager.store.models import HealthStatus, ProviderRecord


def create_store(config: DatabaseConfig) -> ProviderStore:
    """Build the store backend selected by *config*."""
    if config.type == "memory":
        return InMemoryProviderStore()

    from provider_manager.store.sql import SqlProviderStore  # lazy: pulls in SQLAlchemy

    return SqlProviderStore(config.url, echo=config.echo)


__all__ = [
    "HealthStatus",
    "InMemoryProviderStore",
    "ProviderDirectory",
    "ProviderRecord",
    "ProviderStore",
    "create_store",
]
