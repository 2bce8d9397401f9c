"""Next-check scheduling for provider health checks.

Healthy providers are checked every ``interval``.  Once a provider is
``not_ready`` the delay grows exponentially::

    delay = min(max_backoff, base_backoff * 2 ** (failures - max_failures))

The exponent starts at 0 on the failure that flips the provider to
``not_ready``, so the first backoff equals ``base_backoff_interval``.
"""

from datetime import datetime, timedelta

from provider_manager.config.schema import HealthCheckConfig
from provider_manager.store.models import HealthStatus

# Ceiling for the backoff exponent; keeps 2**n and the timedelta bounded.
MAX_BACKOFF_EXPONENT = 10


def backoff_delay(consecutive_failures: int, config: HealthCheckConfig) -> float:
    """Backoff delay in seconds for a ``not_ready`` provider."""
    exponent = consecutive_failures - config.max_consecutive_failures
    exponent = min(max(exponent, 0), MAX_BACKOFF_EXPONENT)
    delay = config.base_backoff_interval * (2**exponent)
    return min(delay, config.max_backoff_interval)


def next_check_time(
    now: datetime,
    status: HealthStatus,
    consecutive_failures: int,
    config: HealthCheckConfig,
) -> datetime:
    """When the provider should next be probed, given its new state."""
    if status == HealthStatus.READY:
        return now + timedelta(seconds=config.interval)
    return now + timedelta(seconds=backoff_delay(consecutive_failures, config))
