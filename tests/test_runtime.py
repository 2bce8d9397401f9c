"""Tests for the manager service lifecycle and event log."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from provider_manager.config import build_config
from provider_manager.health import LivenessProber
from provider_manager.runtime import InvalidStateTransition, ProviderManagerService, ServiceState
from provider_manager.runtime.models import is_valid_transition
from provider_manager.store import HealthStatus, InMemoryProviderStore, ProviderRecord


def _service(store=None) -> ProviderManagerService:
    config = build_config({"database": {"type": "memory"}}, environ={})
    prober = LivenessProber(timeout=1.0, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    return ProviderManagerService(config, store=store, prober=prober)


class FailingStore(InMemoryProviderStore):
    async def initialize(self) -> None:
        raise RuntimeError("database unreachable")


class TestTransitions:
    @pytest.mark.parametrize(
        "current, target, allowed",
        [
            (ServiceState.PENDING, ServiceState.STARTING, True),
            (ServiceState.PENDING, ServiceState.RUNNING, False),
            (ServiceState.RUNNING, ServiceState.STOPPING, True),
            (ServiceState.STOPPED, ServiceState.STARTING, False),
            (ServiceState.ERROR, ServiceState.STARTING, True),
        ],
    )
    def test_is_valid_transition(self, current, target, allowed: bool) -> None:
        assert is_valid_transition(current, target) is allowed


class TestLifecycle:
    def test_start_and_stop(self) -> None:
        async def scenario():
            service = _service()
            assert service.state == ServiceState.PENDING
            await service.start()
            running = service.is_running, service.monitor is not None and service.monitor.running
            status = service.get_status()
            await service.stop()
            return service, running, status

        service, running, status = asyncio.run(scenario())

        assert running == (True, True)
        assert status.state == ServiceState.RUNNING
        assert status.store_type == "memory"
        assert status.uptime_seconds is not None
        assert service.state == ServiceState.STOPPED
        assert service.monitor is None

    def test_start_failure_moves_to_error(self) -> None:
        async def scenario():
            service = _service(store=FailingStore())
            with pytest.raises(RuntimeError):
                await service.start()
            return service

        service = asyncio.run(scenario())
        assert service.state == ServiceState.ERROR
        assert "database unreachable" in service.get_status().error_message

    def test_stop_when_pending_is_noop(self) -> None:
        async def scenario():
            service = _service()
            await service.stop()
            return service

        assert asyncio.run(scenario()).state == ServiceState.PENDING

    def test_cannot_restart_after_stop(self) -> None:
        async def scenario():
            service = _service()
            await service.start()
            await service.stop()
            with pytest.raises(InvalidStateTransition):
                await service.start()

        asyncio.run(scenario())


class TestEvents:
    def test_state_changes_recorded_newest_first(self) -> None:
        async def scenario():
            service = _service()
            await service.start()
            await service.stop()
            return service.get_events(stage="status")

        messages = [e["message"] for e in asyncio.run(scenario())]
        assert messages[0].endswith("stopped")
        assert messages[-1].endswith("starting")

    def test_health_transition_event(self) -> None:
        service = _service()
        record = ProviderRecord(
            name="p1", service_type="vm", schema_version="v1", endpoint="http://p1"
        )
        service._on_health_change(record, HealthStatus.READY, HealthStatus.NOT_READY)

        events = service.get_events(stage="health")
        assert len(events) == 1
        assert events[0]["severity"] == "warning"
        assert events[0]["provider"] == "p1"
        assert events[0]["details"]["to"] == "not_ready"

    def test_limit(self) -> None:
        service = _service()
        for i in range(5):
            service.emit_event("test", f"event {i}")
        events = service.get_events(limit=2, stage="test")
        assert [e["message"] for e in events] == ["event 4", "event 3"]
