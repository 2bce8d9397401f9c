"""Environment handling for configuration values.

Two mechanisms are supported:

* ``${VAR}`` placeholders inside YAML string values are expanded.
* Well-known environment variables (``HEALTH_CHECK_INTERVAL``, ``DB_HOST``,
  ``SVC_ADDRESS`` ...) override the matching config keys.
"""

from __future__ import annotations

import copy
import os
import re
from typing import Any, Dict, Mapping, Optional, Tuple

# Regex for ${VAR_NAME}, captures the variable name inside ${}
_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

# Environment variable -> (section, key)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "HEALTH_CHECK_INTERVAL": ("health_check", "interval"),
    "HEALTH_CHECK_TIMEOUT": ("health_check", "timeout"),
    "HEALTH_CHECK_MAX_CONSECUTIVE_FAILURES": ("health_check", "max_consecutive_failures"),
    "HEALTH_CHECK_BASE_BACKOFF_INTERVAL": ("health_check", "base_backoff_interval"),
    "HEALTH_CHECK_MAX_BACKOFF_INTERVAL": ("health_check", "max_backoff_interval"),
    "DB_TYPE": ("database", "type"),
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_NAME": ("database", "name"),
    "DB_USER": ("database", "user"),
    "DB_PASS": ("database", "password"),
    "DB_PATH": ("database", "path"),
    "SVC_LOG_LEVEL": ("server", "log_level"),
}


def expand_env_vars(value: Any) -> Any:
    """Recursively expand ``${VAR}`` references in string values.

    - If the env var is not set, the placeholder is left unchanged.
    - Non-string leaves are returned as-is.
    - Dicts and lists are walked recursively.
    """
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(
            lambda m: os.environ.get(m.group(1), m.group(0)),
            value,
        )
    if isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _split_address(address: str) -> Tuple[Optional[str], Optional[str]]:
    """Split ``host:port`` / ``:port`` into its parts."""
    host, sep, port = address.strip().rpartition(":")
    if not sep:
        return address.strip() or None, None
    return host or None, port or None


def apply_env_overrides(
    raw_data: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Return a copy of *raw_data* with environment overrides applied.

    Empty environment values are ignored.
    """
    env = os.environ if environ is None else environ
    data = copy.deepcopy(raw_data)

    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if not value:
            continue
        target = data.get(section)
        if not isinstance(target, dict):
            target = {}
            data[section] = target
        target[key] = value

    address = env.get("SVC_ADDRESS")
    if address:
        host, port = _split_address(address)
        server = data.get("server")
        if not isinstance(server, dict):
            server = {}
            data["server"] = server
        if host:
            server["host"] = host
        if port:
            server["port"] = port

    return data
