"""Application factory for the FastAPI app.

Centralizes app construction (middleware, handlers, routers) so tests can
build isolated instances.
"""

from __future__ import annotations

from fastapi import Depends, FastAPI

from shareskippy.api.routes import contact_router, health_router
from shareskippy.core.config import settings
from shareskippy.core.exception_handlers import setup_exception_handlers
from shareskippy.core.logging import configure_logging
from shareskippy.core.middleware import request_id_middleware
from shareskippy.core.rate_limit import rate_limit_dependency


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="ShareSkippy API",
        description=(
            "Community API connecting dog owners with volunteer sitters. "
            "Every /v1 route is rate limited per client address."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(
        contact_router,
        prefix="/v1",
        dependencies=[Depends(rate_limit_dependency("api"))],
    )
    app.include_router(health_router)

    return app
