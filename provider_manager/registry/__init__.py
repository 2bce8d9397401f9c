"""Provider registry (registration, lookup, update, removal)."""

from provider_manager.registry.models import ProviderSpec, RegistrationStatus
from provider_manager.registry.service import ProviderRegistry, parse_provider_id

__all__ = [
    "ProviderRegistry",
    "ProviderSpec",
    "RegistrationStatus",
    "parse_provider_id",
]
