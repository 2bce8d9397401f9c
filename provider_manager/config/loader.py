"""Configuration file loading and validation.

Loads a YAML configuration file, expands ``${ENV_VAR}`` placeholders,
applies environment overrides and validates against the Pydantic models
defined in :mod:`schema`.

The public API is :func:`load_manager_config`, which returns a validated
:class:`ManagerConfig`.
"""

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from provider_manager.config.env import apply_env_overrides, expand_env_vars
from provider_manager.config.schema import ManagerConfig
from provider_manager.display.logging_config import secret_redactor
from provider_manager.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Recognised config file extensions.
_YAML_EXTS = frozenset({".yaml", ".yml"})


def _read_config_file(cfg_fpath: str) -> Dict[str, Any]:
    """Read and parse a YAML config file from *cfg_fpath*.

    Raises :class:`ConfigurationError` on I/O or parse errors.  An empty
    file is treated as an empty mapping.
    """
    ext = os.path.splitext(cfg_fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported config file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )

    try:
        with open(cfg_fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading configuration file: {cfg_fpath}\n  {exc}") from exc

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            "Top-level configuration content must be a YAML mapping (dictionary)."
        )
    return raw_data


def _format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"]) or "(root)"
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


# ── Public API ───────────────────────────────────────────────────────────


def build_config(
    raw_data: Dict[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> ManagerConfig:
    """Expand, override and validate an already-parsed config mapping.

    Raises:
        ConfigurationError: On validation failures (all errors reported at once).
    """
    raw_data = expand_env_vars(raw_data)
    raw_data = apply_env_overrides(raw_data, environ)

    try:
        config = ManagerConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = _format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n" f"{error_summary}"
        ) from exc

    if config.database.password:
        secret_redactor.register(config.database.password)
    return config


def load_manager_config(
    cfg_fpath: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ManagerConfig:
    """Load, expand, validate, and return the full configuration.

    Steps:
        1. Read YAML file (skipped when *cfg_fpath* is ``None``)
        2. Expand ``${VAR}`` environment variable references
        3. Apply ``HEALTH_CHECK_*`` / ``DB_*`` / ``SVC_*`` overrides
        4. Validate against :class:`ManagerConfig` (Pydantic)

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures.
    """
    if cfg_fpath is None:
        logger.debug("No configuration file given; using defaults and environment.")
        raw_data: Dict[str, Any] = {}
    else:
        logger.debug("Loading configuration file: %s", cfg_fpath)
        if not os.path.exists(cfg_fpath):
            raise ConfigurationError(f"Configuration file does not exist: {cfg_fpath}")
        raw_data = _read_config_file(cfg_fpath)

    config = build_config(raw_data, environ)

    hc = config.health_check
    logger.info(
        "Configuration '%s' loaded (v%s). store=%s, health check interval=%.1fs timeout=%.1fs "
        "max_failures=%d backoff=%.1fs..%.1fs",
        cfg_fpath or "<defaults>",
        config.version,
        config.database.type,
        hc.interval,
        hc.timeout,
        hc.max_consecutive_failures,
        hc.base_backoff_interval,
        hc.max_backoff_interval,
    )
    return config
