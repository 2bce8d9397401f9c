"""Application lifespan management - startup and shutdown sequences.

The Starlette ``lifespan`` context delegates to
:class:`~provider_manager.runtime.ProviderManagerService`, so the health
monitor runs exactly as long as the HTTP server does.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from starlette.applications import Starlette

from provider_manager.constants import SERVER_NAME, SERVER_VERSION
from provider_manager.runtime.service import ProviderManagerService

logger = logging.getLogger(__name__)


def _get_service(app: Starlette) -> ProviderManagerService:
    service = getattr(app.state, "manager_service", None)
    if service is None:
        raise RuntimeError("ProviderManagerService not found on app.state")
    return service


@asynccontextmanager
async def app_lifespan(app: Starlette) -> AsyncIterator[None]:
    """Start the manager service on startup and stop it on shutdown."""
    service = _get_service(app)
    logger.info("---- %s v%s: starting application lifespan ----", SERVER_NAME, SERVER_VERSION)
    try:
        await service.start()
    except Exception:
        logger.exception("Service startup failed.")
        await service.stop()
        raise

    try:
        yield
    finally:
        logger.info("Application shutting down; stopping service.")
        await service.stop()
        logger.info("---- %s lifespan finished (state=%s) ----", SERVER_NAME, service.state.value)
