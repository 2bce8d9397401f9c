"""Starlette ASGI application factory."""

import logging

from starlette.applications import Starlette
from starlette.routing import Mount

from provider_manager.constants import API_PREFIX, SERVER_NAME
from provider_manager.runtime.service import ProviderManagerService
from provider_manager.server.lifespan import app_lifespan
from provider_manager.server.management import create_management_app

logger = logging.getLogger(__name__)


def create_app(service: ProviderManagerService) -> Starlette:
    """Create the ASGI application serving *service* under ``/api/v1alpha1``."""
    mgmt_app = create_management_app()
    application = Starlette(
        lifespan=app_lifespan,
        routes=[Mount(API_PREFIX, app=mgmt_app)],
    )
    # Both apps need the service: the lifespan runs on the outer app, the
    # route handlers see the mounted sub-app as ``request.app``.
    application.state.manager_service = service
    mgmt_app.state.manager_service = service
    logger.info("Starlette ASGI app '%s' created. API mounted on %s", SERVER_NAME, API_PREFIX)
    return application
