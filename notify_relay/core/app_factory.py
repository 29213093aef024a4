"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from notify_relay.api.routes import health_router, notifications_router
from notify_relay.core.config import settings
from notify_relay.core.exception_handlers import setup_exception_handlers
from notify_relay.core.logging import configure_logging
from notify_relay.core.middleware import request_id_middleware
from notify_relay.core.openapi import apply_openapi_customizations

API_PREFIX = "/api/v1"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Notify Relay",
        description=(
            "Push a message against an opaque bearer token and read the token's "
            "message history newest-first. Writes are rate limited per token "
            "with a fixed window."
        ),
        version="0.1.0",
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(notifications_router, prefix=API_PREFIX)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
