"""Custom exception classes for the Service Provider Manager."""

from typing import Any, Dict, List, Optional


class ProviderManagerError(Exception):
    """Base class for all custom exceptions in the Service Provider Manager."""

    pass


class ConfigurationError(ProviderManagerError):
    """Raised when loading or validating the configuration file fails."""

    pass


class ProviderNotFoundError(ProviderManagerError):
    """Raised when a provider record does not exist (or no longer exists)."""

    def __init__(self, provider_id: Optional[object] = None, message: Optional[str] = None):
        self.provider_id = provider_id
        if message is None:
            message = f"provider {provider_id} not found" if provider_id else "provider not found"
        super().__init__(message)


class ProviderConflictError(ProviderManagerError):
    """
    Raised when a provider name or id is already taken by a
    different provider record.
    """

    pass


class InvalidProviderError(ProviderManagerError):
    """Raised when a provider request is malformed (bad id, bad body)."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        self.details = details
        super().__init__(message)
