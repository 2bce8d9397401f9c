"""Shared constants for the Service Provider Manager."""

SERVER_NAME = "Service Provider Manager"
SERVER_VERSION = "0.1.0"

# Network defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

# Management API mount point
API_PREFIX = "/api/v1alpha1"

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

# Database defaults
DEFAULT_SQLITE_PATH = "service-provider.db"

# Health check defaults (seconds unless noted)
DEFAULT_CHECK_INTERVAL = 10.0
DEFAULT_PROBE_TIMEOUT = 5.0
DEFAULT_MAX_CONSECUTIVE_FAILURES = 3
DEFAULT_BASE_BACKOFF_INTERVAL = 10.0
DEFAULT_MAX_BACKOFF_INTERVAL = 300.0
HEALTH_PATH = "/health"
