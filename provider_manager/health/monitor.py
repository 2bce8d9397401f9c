"""Periodic health monitor for registered service providers.

Runs an asyncio background task that, on every tick, takes a snapshot of
the providers that are due for a check, probes them one after another and
writes back their readiness, failure count and next check time.

Per-provider state machine::

    READY ──(>= max_consecutive_failures failures)──► NOT_READY
      ▲                                                   │
      └──────────────────(one success)────────────────────┘
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from provider_manager.config.schema import HealthCheckConfig
from provider_manager.errors import ProviderNotFoundError
from provider_manager.health.backoff import next_check_time
from provider_manager.health.prober import LivenessProber
from provider_manager.store.base import ProviderDirectory
from provider_manager.store.models import HealthStatus, ProviderRecord, utcnow

logger = logging.getLogger(__name__)

# Extra seconds stop() waits beyond one probe timeout before cancelling.
DEFAULT_STOP_GRACE = 5.0

StatusChangeCallback = Callable[[ProviderRecord, HealthStatus, HealthStatus], Any]


@dataclass
class ScanSummary:
    """Outcome of one :meth:`HealthMonitor.check_providers` pass."""

    started_at: datetime
    due: int = 0
    checked: int = 0
    updated: int = 0
    update_failures: int = 0
    transitions: List[Tuple[str, str, str]] = field(default_factory=list)
    abandoned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "due": self.due,
            "checked": self.checked,
            "updated": self.updated,
            "update_failures": self.update_failures,
            "transitions": [
                {"provider": name, "from": old, "to": new} for name, old, new in self.transitions
            ],
            "abandoned": self.abandoned,
        }


class HealthMonitor:
    """Background health-check scheduler.

    Parameters
    ----------
    directory:
        Provider persistence (see :class:`ProviderDirectory`).
    config:
        Interval, probe timeout, failure threshold and backoff bounds.
    prober:
        Probe implementation; defaults to a :class:`LivenessProber` using
        ``config.timeout``.  A prober created here is closed by :meth:`stop`.
    clock:
        Returns the current aware UTC time (injectable for tests).
    on_status_change:
        Optional callback ``(record, old_status, new_status)``.
    """

    def __init__(
        self,
        directory: ProviderDirectory,
        config: HealthCheckConfig,
        *,
        prober: Optional[LivenessProber] = None,
        clock: Callable[[], datetime] = utcnow,
        on_status_change: Optional[StatusChangeCallback] = None,
    ) -> None:
        self._directory = directory
        self._config = config
        self._owns_prober = prober is None
        self._prober = prober if prober is not None else LivenessProber(config.timeout)
        self._clock = clock
        self._on_status_change = on_status_change

        self._task: Optional[asyncio.Task[None]] = None
        self._stopped = asyncio.Event()
        self._last_summary: Optional[ScanSummary] = None
        self._scans = 0

    # ── Public API ───────────────────────────────────────────────────────

    @property
    def config(self) -> HealthCheckConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_summary(self) -> Optional[ScanSummary]:
        """Summary of the most recent completed scan (``None`` before the first)."""
        return self._last_summary

    @property
    def last_scan_at(self) -> Optional[datetime]:
        """Start time of the most recent completed scan."""
        return self._last_summary.started_at if self._last_summary is not None else None

    @property
    def scans(self) -> int:
        return self._scans

    def start(self) -> None:
        """Launch the background check loop (first scan runs immediately)."""
        if self.running:
            logger.warning("Health monitor already running.")
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name="provider-health-monitor")
        logger.info(
            "Health monitor started (interval=%.1fs, probe_timeout=%.1fs, "
            "max_consecutive_failures=%d)",
            self._config.interval,
            self._config.timeout,
            self._config.max_consecutive_failures,
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the current scan to finish.

        No new probe starts once stop is signalled.  If the in-flight probe
        has not finished within *timeout* seconds (default: probe timeout
        plus :data:`DEFAULT_STOP_GRACE`) the task is cancelled.
        """
        self._stopped.set()
        if timeout is None:
            timeout = self._config.timeout + DEFAULT_STOP_GRACE
        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Health monitor did not stop within %.1fs; cancelled.", timeout)
            except asyncio.CancelledError:
                # Only a cancelled monitor task is absorbed; cancellation of
                # the caller must propagate.
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
            self._task = None
        if self._owns_prober:
            await self._prober.close()
        logger.info("Health monitor stopped.")

    async def check_providers(self) -> ScanSummary:
        """Run one scan over the providers that are due right now."""
        now = self._clock()
        summary = ScanSummary(started_at=now)
        try:
            providers = await self._directory.list_due_for_health_check(now)
        except Exception:
            logger.exception("Error listing providers for health check; skipping this scan.")
            summary.abandoned = True
            self._finish_scan(summary)
            return summary

        summary.due = len(providers)
        for provider in providers:
            if self._stopped.is_set():
                logger.debug(
                    "Stop requested; %d provider(s) left unchecked in this scan.",
                    summary.due - summary.checked,
                )
                break
            await self._check_provider(provider, summary)

        self._finish_scan(summary)
        return summary

    # ── Background loop ─────────────────────────────────────────────────

    async def _run(self) -> None:
        """Scan now, then once per interval until stopped."""
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stopped.is_set():
            await self.check_providers()

            next_tick += self._config.interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Scan overran the interval: run again at once, drop missed ticks.
                next_tick = loop.time()
                delay = 0
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=delay)
                break  # stopped was set
            except asyncio.TimeoutError:
                pass  # interval elapsed, loop again

    # ── Per-provider check ──────────────────────────────────────────────

    async def _check_provider(self, provider: ProviderRecord, summary: ScanSummary) -> None:
        """Probe one provider and persist its new health state."""
        now = self._clock()
        healthy = await self._prober.probe(provider.endpoint, name=provider.name)
        summary.checked += 1

        old_status = provider.health_status
        new_status, failures = self.evaluate(provider, healthy)
        next_check = next_check_time(now, new_status, failures, self._config)

        try:
            await self._directory.update_health_status(provider.id, new_status, failures, next_check)
        except ProviderNotFoundError:
            logger.warning(
                "[%s] Provider disappeared during health check; update skipped.", provider.name
            )
            summary.update_failures += 1
            return
        except Exception:
            logger.exception("[%s] Error updating health status", provider.name)
            summary.update_failures += 1
            return

        summary.updated += 1
        if old_status != new_status:
            summary.transitions.append((provider.name, old_status.value, new_status.value))
            log = logger.warning if new_status == HealthStatus.NOT_READY else logger.info
            log(
                "[%s] Provider health status changed: %s → %s (consecutive failures: %d)",
                provider.name,
                old_status.value,
                new_status.value,
                failures,
            )
            self._notify(provider, old_status, new_status)

    def evaluate(self, provider: ProviderRecord, healthy: bool) -> Tuple[HealthStatus, int]:
        """New ``(status, consecutive_failures)`` for *provider* after a probe."""
        if healthy:
            return HealthStatus.READY, 0
        failures = provider.consecutive_failures + 1
        status = provider.health_status
        if failures >= self._config.max_consecutive_failures:
            status = HealthStatus.NOT_READY
        return status, failures

    def _finish_scan(self, summary: ScanSummary) -> None:
        self._scans += 1
        self._last_summary = summary
        if summary.due:
            logger.debug(
                "Health scan done: %d due, %d checked, %d updated, %d update failure(s).",
                summary.due,
                summary.checked,
                summary.updated,
                summary.update_failures,
            )

    def _notify(self, provider: ProviderRecord, old: HealthStatus, new: HealthStatus) -> None:
        if self._on_status_change is None:
            return
        try:
            self._on_status_change(provider, old, new)
        except Exception:
            logger.debug("[%s] on_status_change callback error", provider.name, exc_info=True)
