"""Management API router.

All routes are mounted under ``/api/v1alpha1`` by ``server/app.py``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, Router

from provider_manager.constants import SERVER_VERSION
from provider_manager.errors import (
    InvalidProviderError,
    ProviderConflictError,
    ProviderNotFoundError,
)
from provider_manager.registry import ProviderSpec, RegistrationStatus
from provider_manager.runtime.models import ServiceState
from provider_manager.runtime.service import ProviderManagerService
from provider_manager.server.management.schemas import (
    ErrorResponse,
    EventsResponse,
    HealthResponse,
    MonitorConfig,
    MonitorResponse,
    ProviderResponse,
    ProvidersResponse,
)
from provider_manager.store import ProviderRecord

logger = logging.getLogger(__name__)

MAX_EVENTS_LIMIT = 500


# ── Helpers ──────────────────────────────────────────────────────────────


def _get_service(request: Request) -> ProviderManagerService:
    """Retrieve the ProviderManagerService instance from app state."""
    service: Optional[ProviderManagerService] = getattr(
        request.app.state, "manager_service", None
    )
    if service is None:
        raise RuntimeError("ProviderManagerService not found on app.state")
    return service


def _error_json(
    error: str,
    message: str,
    status_code: int,
    details: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


def _provider_json(
    record: ProviderRecord,
    status_code: int = 200,
    status: Optional[RegistrationStatus] = None,
) -> JSONResponse:
    payload = ProviderResponse(**record.to_dict())
    if status is not None:
        payload.status = status.value
    return JSONResponse(payload.model_dump(exclude_none=True), status_code=status_code)


async def _read_spec(request: Request) -> ProviderSpec:
    """Parse the JSON body into a :class:`ProviderSpec`.

    Raises :class:`InvalidProviderError` (with ``details``) on bad input.
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidProviderError("request body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise InvalidProviderError("request body must be a JSON object")
    try:
        return ProviderSpec.model_validate(body)
    except ValidationError as exc:
        details = [{"loc": [str(p) for p in e["loc"]], "msg": e["msg"]} for e in exc.errors()]
        raise InvalidProviderError("invalid provider", details) from exc


def _map_error(exc: Exception) -> JSONResponse:
    if isinstance(exc, ProviderNotFoundError):
        return _error_json("not_found", str(exc), 404)
    if isinstance(exc, ProviderConflictError):
        return _error_json("conflict", str(exc), 409)
    if isinstance(exc, InvalidProviderError):
        return _error_json("invalid_argument", str(exc), 400, exc.details)
    raise exc


# ── GET /health ──────────────────────────────────────────────────────────


async def handle_health(request: Request) -> JSONResponse:
    """Liveness of the manager process itself."""
    service = _get_service(request)
    status = service.get_status()
    ok = status.state == ServiceState.RUNNING
    resp = HealthResponse(
        status="ok" if ok else "unavailable",
        state=status.state.value,
        version=SERVER_VERSION,
        uptime_seconds=status.uptime_seconds,
    )
    return JSONResponse(resp.model_dump(), status_code=200 if ok else 503)


# ── /providers ───────────────────────────────────────────────────────────


async def handle_list_providers(request: Request) -> JSONResponse:
    service = _get_service(request)
    service_type = request.query_params.get("type")
    providers = await service.registry.list(service_type)
    resp = ProvidersResponse(providers=[ProviderResponse(**p.to_dict()) for p in providers])
    return JSONResponse(resp.model_dump(exclude_none=True))


async def handle_create_provider(request: Request) -> JSONResponse:
    """Register a provider, or update it if the name is already registered."""
    service = _get_service(request)
    try:
        spec = await _read_spec(request)
        record, status = await service.registry.register_or_update(
            spec, request.query_params.get("id")
        )
    except (InvalidProviderError, ProviderConflictError, ProviderNotFoundError) as exc:
        return _map_error(exc)
    code = 201 if status == RegistrationStatus.REGISTERED else 200
    return _provider_json(record, code, status)


async def handle_get_provider(request: Request) -> JSONResponse:
    service = _get_service(request)
    try:
        record = await service.registry.get(request.path_params["provider_id"])
    except (InvalidProviderError, ProviderNotFoundError) as exc:
        return _map_error(exc)
    return _provider_json(record)


async def handle_update_provider(request: Request) -> JSONResponse:
    service = _get_service(request)
    try:
        spec = await _read_spec(request)
        record = await service.registry.update(request.path_params["provider_id"], spec)
    except (InvalidProviderError, ProviderConflictError, ProviderNotFoundError) as exc:
        return _map_error(exc)
    return _provider_json(record)


async def handle_delete_provider(request: Request) -> Response:
    service = _get_service(request)
    try:
        await service.registry.delete(request.path_params["provider_id"])
    except (InvalidProviderError, ProviderNotFoundError) as exc:
        return _map_error(exc)
    return Response(status_code=204)


# ── GET /monitor ─────────────────────────────────────────────────────────


async def handle_monitor(request: Request) -> JSONResponse:
    """Health monitor status: running flag, configuration and last scan."""
    service = _get_service(request)
    monitor = service.monitor
    hc = service.config.health_check
    resp = MonitorResponse(
        running=monitor is not None and monitor.running,
        scans=monitor.scans if monitor is not None else 0,
        last_scan_at=(
            monitor.last_scan_at.isoformat()
            if monitor is not None and monitor.last_scan_at is not None
            else None
        ),
        config=MonitorConfig(**hc.model_dump()),
        last_scan=(
            monitor.last_summary.to_dict()
            if monitor is not None and monitor.last_summary is not None
            else None
        ),
    )
    return JSONResponse(resp.model_dump())


# ── GET /events ──────────────────────────────────────────────────────────


async def handle_events(request: Request) -> JSONResponse:
    """Recent service events, newest first (``?limit=&stage=``)."""
    service = _get_service(request)
    try:
        limit = int(request.query_params.get("limit", "100"))
    except ValueError:
        return _error_json("invalid_argument", "limit must be an integer", 400)
    limit = max(0, min(limit, MAX_EVENTS_LIMIT))
    events = service.get_events(limit=limit, stage=request.query_params.get("stage"))
    return JSONResponse(EventsResponse(events=events).model_dump())


management_routes = Router(
    routes=[
        Route("/health", endpoint=handle_health, methods=["GET"]),
        Route("/providers", endpoint=handle_list_providers, methods=["GET"]),
        Route("/providers", endpoint=handle_create_provider, methods=["POST"]),
        Route("/providers/{provider_id}", endpoint=handle_get_provider, methods=["GET"]),
        Route("/providers/{provider_id}", endpoint=handle_update_provider, methods=["PUT"]),
        Route("/providers/{provider_id}", endpoint=handle_delete_provider, methods=["DELETE"]),
        Route("/monitor", endpoint=handle_monitor, methods=["GET"]),
        Route("/events", endpoint=handle_events, methods=["GET"]),
    ]
)
