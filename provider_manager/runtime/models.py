"""Pydantic models for the manager's runtime state.

These models serve dual purpose:
1. Internal state representation for ProviderManagerService
2. API response payloads for the management API
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class ServiceState(str, Enum):
    """Lifecycle states for the manager service.

    Valid transitions:
        PENDING  → STARTING
        STARTING → RUNNING | ERROR
        RUNNING  → STOPPING
        STOPPING → STOPPED | ERROR
        ERROR    → STARTING | STOPPING
    """

    PENDING = "pending"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


# Valid state transitions: current_state → set of allowed next states
_VALID_TRANSITIONS: Dict[ServiceState, frozenset[ServiceState]] = {
    ServiceState.PENDING: frozenset({ServiceState.STARTING}),
    ServiceState.STARTING: frozenset({ServiceState.RUNNING, ServiceState.ERROR}),
    ServiceState.RUNNING: frozenset({ServiceState.STOPPING}),
    ServiceState.STOPPING: frozenset({ServiceState.STOPPED, ServiceState.ERROR}),
    ServiceState.STOPPED: frozenset(),
    ServiceState.ERROR: frozenset({ServiceState.STARTING, ServiceState.STOPPING}),
}


def is_valid_transition(current: ServiceState, target: ServiceState) -> bool:
    """Check whether a state transition is allowed."""
    return target in _VALID_TRANSITIONS.get(current, frozenset())


class ServiceStatus(BaseModel):
    """Overall service status snapshot."""

    state: ServiceState = ServiceState.PENDING
    server_name: str = ""
    server_version: str = ""
    started_at: Optional[datetime] = None
    uptime_seconds: Optional[float] = None
    store_type: str = ""
    monitor_running: bool = False
    error_message: Optional[str] = None
    config_path: Optional[str] = None

    def compute_uptime(self) -> None:
        """Update uptime_seconds based on started_at."""
        if self.started_at is not None:
            delta = datetime.now(timezone.utc) - self.started_at
            self.uptime_seconds = delta.total_seconds()
