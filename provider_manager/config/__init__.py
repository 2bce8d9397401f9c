"""Configuration loading and validation for the Service Provider Manager."""

from provider_manager.config.env import apply_env_overrides, expand_env_vars
from provider_manager.config.loader import build_config, load_manager_config
from provider_manager.config.schema import (
    DatabaseConfig,
    HealthCheckConfig,
    ManagerConfig,
    ServerSettings,
    parse_duration,
)

__all__ = [
    "DatabaseConfig",
    "HealthCheckConfig",
    "ManagerConfig",
    "ServerSettings",
    "apply_env_overrides",
    "build_config",
    "expand_env_vars",
    "load_manager_config",
    "parse_duration",
]
