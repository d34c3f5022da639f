from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from dorfladen_api.core.settings import settings
from dorfladen_api.db.session import async_session
from .api.errors import register_error_handlers
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .services.badges import InProcessBadgeDispatcher, build_badge_dispatcher


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    dispatcher = build_badge_dispatcher(async_session)
    app.state.badge_dispatcher = dispatcher
    logger.info(
        "Ledger service started",
        environment=settings.environment,
        badge_dispatcher=type(dispatcher).__name__,
    )

    try:
        yield
    finally:
        if isinstance(dispatcher, InProcessBadgeDispatcher) and dispatcher.pending:
            logger.info("Waiting for in-flight badge evaluations", pending=dispatcher.pending)
            await dispatcher.drain()


def create_app() -> FastAPI:
    """Application factory for the Dorfladen loyalty ledger service."""
    configure_logging(
        service_name="dorfladen-api",
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Dorfladen Loyalty API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="dorfladen-api",
        service_version=APP_VERSION,
        environment=settings.environment,
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
