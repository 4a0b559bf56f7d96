"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from autopress.api.v1.router import api_router
from autopress.config import get_settings
from autopress.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Starting %s in %s mode", settings.app_name, settings.environment)

    from autopress.db.postgres import init_db
    from autopress.dependencies import get_orchestrator
    from autopress.services.scheduler import GenerationScheduler

    await init_db()
    logger.info("Database tables initialized")

    orchestrator = get_orchestrator()
    if settings.category_slugs:
        await orchestrator.ledger.seed_categories(settings.category_slugs)

    scheduler = None
    if settings.enable_generation:
        if not len(orchestrator.gateway.rotation):
            logger.warning("No provider API keys configured; every generation attempt will fail")
        scheduler = GenerationScheduler(
            orchestrator,
            interval_seconds=settings.scheduler_interval_minutes * 60,
            run_startup=settings.enable_startup_generation,
        )
        scheduler.start()
    else:
        logger.info("Automatic generation disabled")

    yield

    # Shutdown
    logger.info("Shutting down...")
    if scheduler is not None:
        await scheduler.stop()
    if orchestrator.notifier is not None:
        await orchestrator.notifier.drain()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Daily multilingual article generation with quota accounting",
        version="0.1.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "app": settings.app_name}

    return app


app = create_app()
