"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifetime of the service context: it is built when the app starts
and closed when it stops, so no state outlives an app instance.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.storage.base import AbstractPasteStore
from app.api.routes import admin_router, health_router, pastes_router
from app.core.config import Settings, settings as default_settings
from app.core.context import ServiceContext
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import origin_check_middleware, request_id_middleware
from app.core.openapi import apply_openapi_customizations


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractPasteStore | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-loaded ones.
        store: Optional pre-built paste store (tests).
        rate_limiter: Optional pre-built rate limiter (tests).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log, debug=cfg.app.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = ServiceContext.build(cfg, store=store, rate_limiter=rate_limiter)
        app.state.context = context
        context.start_background_tasks()
        try:
            yield
        finally:
            await context.close()

    app = FastAPI(
        title="CloakBin API",
        description=(
            "Zero-knowledge paste sharing. Clients encrypt with AES-256-GCM before "
            "upload and keep the key in the URL fragment; the server only stores "
            "ciphertext with expiry, burn-after-read and password metadata."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    # Per-app settings, read by middleware and dependencies
    app.state.settings = cfg

    # Middleware; the last registered runs outermost
    app.middleware("http")(origin_check_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(pastes_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(health_router)

    # OpenAPI customizations (admin security scheme, tags)
    apply_openapi_customizations(app)

    return app
