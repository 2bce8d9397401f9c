"""Runtime service layer: lifecycle management for the manager."""

from provider_manager.runtime.models import ServiceState, ServiceStatus, is_valid_transition
from provider_manager.runtime.service import InvalidStateTransition, ProviderManagerService

__all__ = [
    "InvalidStateTransition",
    "ProviderManagerService",
    "ServiceState",
    "ServiceStatus",
    "is_valid_transition",
]
