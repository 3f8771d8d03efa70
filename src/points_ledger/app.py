from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from points_ledger.core.settings import settings
from points_ledger.db.session import engine
from .api.errors import register_error_handlers
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Points ledger starting",
        environment=settings.environment,
        point_value=str(settings.point_value),
        promotion_rate_scale=settings.promotion_rate_scale,
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Points ledger stopped")


def create_app() -> FastAPI:
    """Application factory for the points ledger service."""
    configure_logging(
        service_name="points-ledger",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Points Ledger API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    if settings.tracing_enabled:
        configure_tracing(
            app,
            service_name="points-ledger",
            service_version=APP_VERSION,
            environment=settings.environment,
            excluded_urls=settings.tracing_excluded_urls,
        )

    register_error_handlers(app)
    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
