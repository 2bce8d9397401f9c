"""
Service Provider Manager - a registry for service providers.

Providers register an HTTP endpoint for a service type.  A background
health monitor probes each endpoint and keeps the provider's readiness,
failure count and next check time up to date.
"""

from provider_manager.constants import SERVER_NAME, SERVER_VERSION

__version__ = SERVER_VERSION
__app_name__ = SERVER_NAME

__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "__version__",
    "__app_name__",
]
