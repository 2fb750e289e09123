"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from pedagogy_master.adapters.inbound.rest.routers import (
    ai_router,
    health_router,
    providers_router,
)
from pedagogy_master.config import Settings, get_settings
from pedagogy_master.dependencies import close_singletons, get_llm
from pedagogy_master.shared.errors import register_exception_handlers
from pedagogy_master.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from pedagogy_master.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle: startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    grid = get_llm(settings)
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        providers=[
            h.provider_id for h in grid.provider_status() if h.enabled
        ],
    )

    yield

    await close_singletons()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory: creates a fully configured FastAPI instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Pedagogy Master AI",
        description=(
            "Multi-provider LLM synthesis grid for curriculum-grounded lesson "
            "planning, assessment and teaching-strategy generation."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store settings in app state for lifecycle access
    app.state.settings = settings

    # ── Middleware (order matters: first added = innermost) ───
    cors_origins = settings.cors_origins
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(ai_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    @app.get("/")
    async def root():
        return {
            "message": "Pedagogy Master AI is running",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


# Uvicorn entry-point
app = create_app()
