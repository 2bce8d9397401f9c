"""HTTP server: ASGI app factory, lifespan and management API."""
