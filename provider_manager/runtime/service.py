"""Manager runtime service: lifecycle management with state machine.

ProviderManagerService owns the provider store, the registry and the
health monitor, and runs the startup/shutdown sequence.  It does not know
about HTTP; the management API reads status through its properties.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from provider_manager.config.schema import ManagerConfig
from provider_manager.constants import SERVER_NAME, SERVER_VERSION
from provider_manager.health import HealthMonitor, LivenessProber
from provider_manager.registry import ProviderRegistry
from provider_manager.runtime.models import ServiceState, ServiceStatus, is_valid_transition
from provider_manager.store import HealthStatus, ProviderRecord, ProviderStore, create_store

logger = logging.getLogger(__name__)

MAX_EVENTS = 500


class InvalidStateTransition(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(self, current: ServiceState, target: ServiceState) -> None:
        super().__init__(f"Invalid state transition: {current.value} → {target.value}")
        self.current = current
        self.target = target


class ProviderManagerService:
    """Manages the lifecycle of the provider store and health monitor.

    State machine::

        PENDING ─► STARTING ─► RUNNING ─► STOPPING ─► STOPPED
                       │                      │
                       └──────► ERROR ◄───────┘

    Usage::

        service = ProviderManagerService(config)
        await service.start()
        # ... serve requests via service.registry ...
        await service.stop()

    Parameters
    ----------
    config:
        Validated configuration.
    store:
        Store to use instead of the one described by ``config.database``.
    prober:
        Prober handed to the health monitor (tests inject a fake transport).
    """

    def __init__(
        self,
        config: ManagerConfig,
        *,
        store: Optional[ProviderStore] = None,
        prober: Optional[LivenessProber] = None,
        config_path: Optional[str] = None,
    ) -> None:
        self._config = config
        self._config_path = config_path
        self._state: ServiceState = ServiceState.PENDING
        self._started_at: Optional[datetime] = None
        self._error_message: Optional[str] = None

        self._store: ProviderStore = store if store is not None else create_store(config.database)
        self._registry = ProviderRegistry(self._store)
        self._prober = prober
        self._monitor: Optional[HealthMonitor] = None

        self._events: Deque[Dict[str, Any]] = deque(maxlen=MAX_EVENTS)
        self._event_id_counter = 0

        logger.info("ProviderManagerService initialized (state=%s).", self._state.value)

    # ------------------------------------------------------------------ #
    #  Properties
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def config(self) -> ManagerConfig:
        return self._config

    @property
    def store(self) -> ProviderStore:
        return self._store

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def monitor(self) -> Optional[HealthMonitor]:
        """The background health monitor (``None`` until the service starts)."""
        return self._monitor

    @property
    def is_running(self) -> bool:
        return self._state == ServiceState.RUNNING

    # ------------------------------------------------------------------ #
    #  State Machine
    # ------------------------------------------------------------------ #

    def _transition(self, target: ServiceState) -> None:
        """Transition to *target* state if the move is valid."""
        if not is_valid_transition(self._state, target):
            raise InvalidStateTransition(self._state, target)
        prev = self._state
        self._state = target
        logger.info("Service state: %s → %s", prev.value, target.value)
        self.emit_event("status", f"State changed: {prev.value} → {target.value}")

    # ------------------------------------------------------------------ #
    #  Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Initialise the store and start the health monitor.

        Raises:
            InvalidStateTransition: If called in a state that cannot move to STARTING.
            Exception: Store initialisation errors are re-raised after
                moving to ERROR.
        """
        self._transition(ServiceState.STARTING)
        self._error_message = None
        try:
            await self._store.initialize()

            self._monitor = HealthMonitor(
                self._store,
                self._config.health_check,
                prober=self._prober,
                on_status_change=self._on_health_change,
            )
            self._monitor.start()

            self._started_at = datetime.now(timezone.utc)
            self._transition(ServiceState.RUNNING)
            logger.info("ProviderManagerService is RUNNING.")
        except Exception as exc:
            self._error_message = f"{type(exc).__name__}: {exc}"
            self._transition(ServiceState.ERROR)
            raise

    async def stop(self) -> None:
        """Stop the health monitor and close the store.

        Safe to call after a failed start; a no-op when already stopped.
        """
        if self._state in (ServiceState.RUNNING, ServiceState.ERROR):
            self._transition(ServiceState.STOPPING)
        elif self._state == ServiceState.STARTING:
            self._state = ServiceState.ERROR
            logger.warning("Stop requested while still STARTING; forcing ERROR state.")
            self._transition(ServiceState.STOPPING)
        elif self._state in (ServiceState.STOPPED, ServiceState.PENDING):
            logger.info(
                "Stop requested but service is already %s; nothing to do.",
                self._state.value,
            )
            return
        elif self._state == ServiceState.STOPPING:
            logger.warning("Stop already in progress; ignoring duplicate call.")
            return

        try:
            if self._monitor is not None:
                await self._monitor.stop()
                self._monitor = None
            await self._store.close()
            self._transition(ServiceState.STOPPED)
        except Exception as exc:
            self._error_message = f"Shutdown error: {type(exc).__name__}: {exc}"
            logger.exception("Error during shutdown: %s", exc)
            self._transition(ServiceState.ERROR)

    # ------------------------------------------------------------------ #
    #  Status & events
    # ------------------------------------------------------------------ #

    def get_status(self) -> ServiceStatus:
        status = ServiceStatus(
            state=self._state,
            server_name=SERVER_NAME,
            server_version=SERVER_VERSION,
            started_at=self._started_at,
            store_type=self._config.database.type,
            monitor_running=self._monitor is not None and self._monitor.running,
            error_message=self._error_message,
            config_path=self._config_path,
        )
        status.compute_uptime()
        return status

    def _on_health_change(
        self,
        provider: ProviderRecord,
        old: HealthStatus,
        new: HealthStatus,
    ) -> None:
        severity = "warning" if new == HealthStatus.NOT_READY else "info"
        self.emit_event(
            "health",
            f"Provider {provider.name}: {old.value} → {new.value}",
            severity=severity,
            provider=provider.name,
            details={"provider_id": str(provider.id), "from": old.value, "to": new.value},
        )

    def emit_event(
        self,
        stage: str,
        message: str,
        *,
        severity: str = "info",
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Append an event to the in-memory ring buffer."""
        self._event_id_counter += 1
        event: Dict[str, Any] = {
            "id": f"evt-{self._event_id_counter}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stage": stage,
            "message": message,
            "severity": severity,
            "provider": provider,
            "details": details,
        }
        self._events.append(event)
        return event

    def get_events(self, *, limit: int = 100, stage: Optional[str] = None) -> List[Dict[str, Any]]:
        """Most recent events first, optionally filtered by *stage*."""
        events = [e for e in reversed(self._events) if stage is None or e["stage"] == stage]
        return events[:limit]
