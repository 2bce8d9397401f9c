"""Health monitoring package for registered service providers.

Public API
----------
- :class:`HealthMonitor`: Background health-check scheduler
- :class:`ScanSummary`: Outcome of one scan
- :class:`LivenessProber`: HTTP ``/health`` probe
- :func:`next_check_time`: Interval / exponential backoff scheduling
"""

from provider_manager.health.backoff import MAX_BACKOFF_EXPONENT, backoff_delay, next_check_time
from provider_manager.health.monitor import HealthMonitor, ScanSummary
from provider_manager.health.prober import LivenessProber, health_url

__all__ = [
    "MAX_BACKOFF_EXPONENT",
    "HealthMonitor",
    "LivenessProber",
    "ScanSummary",
    "backoff_delay",
    "health_url",
    "next_check_time",
]
