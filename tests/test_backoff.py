"""Tests for next-check scheduling (interval and exponential backoff)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from provider_manager.config.schema import HealthCheckConfig
from provider_manager.health.backoff import MAX_BACKOFF_EXPONENT, backoff_delay, next_check_time
from provider_manager.store.models import HealthStatus

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

CFG = HealthCheckConfig(
    interval=10,
    timeout=5,
    max_consecutive_failures=3,
    base_backoff_interval=10,
    max_backoff_interval=300,
)


class TestReady:
    @pytest.mark.parametrize("failures", [0, 1, 2, 3, 50])
    def test_ready_uses_interval(self, failures: int) -> None:
        assert next_check_time(NOW, HealthStatus.READY, failures, CFG) == NOW + timedelta(seconds=10)


class TestNotReady:
    def test_first_backoff_is_base_interval(self) -> None:
        result = next_check_time(NOW, HealthStatus.NOT_READY, 3, CFG)
        assert result == NOW + timedelta(seconds=10)

    @pytest.mark.parametrize(
        "k, expected",
        [(0, 10), (1, 20), (2, 40), (3, 80), (4, 160), (5, 300), (8, 300)],
    )
    def test_exponential_growth_capped(self, k: int, expected: float) -> None:
        result = next_check_time(NOW, HealthStatus.NOT_READY, 3 + k, CFG)
        assert result == NOW + timedelta(seconds=expected)

    def test_below_threshold_never_shrinks_below_base(self) -> None:
        # NOT_READY with fewer failures than the threshold (e.g. threshold raised)
        assert backoff_delay(1, CFG) == 10

    def test_exponent_clamped(self) -> None:
        cfg = HealthCheckConfig(
            interval=10,
            timeout=5,
            max_consecutive_failures=3,
            base_backoff_interval=1,
            max_backoff_interval=10**9,
        )
        ceiling = 2**MAX_BACKOFF_EXPONENT
        assert backoff_delay(3 + MAX_BACKOFF_EXPONENT, cfg) == ceiling
        assert backoff_delay(3 + MAX_BACKOFF_EXPONENT + 1, cfg) == ceiling
        assert backoff_delay(10_000, cfg) == ceiling

    def test_huge_failure_count_returns_bounded_time(self) -> None:
        result = next_check_time(NOW, HealthStatus.NOT_READY, 10**12, CFG)
        assert result == NOW + timedelta(seconds=300)

    def test_pure(self) -> None:
        a = next_check_time(NOW, HealthStatus.NOT_READY, 5, CFG)
        b = next_check_time(NOW, HealthStatus.NOT_READY, 5, CFG)
        assert a == b
