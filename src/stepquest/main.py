"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from stepquest.admin.router import router as admin_router
from stepquest.config import get_settings
from stepquest.events.router import router as events_router
from stepquest.health.router import router as health_router
from stepquest.leaderboard.router import router as leaderboard_router
from stepquest.middleware import setup_middleware
from stepquest.middleware.logging import setup_logging
from stepquest.pipeline.context import PipelineContext
from stepquest.runtime import start_runtime, stop_runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings, component="api")

    # A context injected by create_app is owned by the caller
    if getattr(app.state, "pipeline", None) is not None:
        yield
        return

    app.state.pipeline = await start_runtime(settings)
    try:
        yield
    finally:
        await stop_runtime(app.state.pipeline)
        app.state.pipeline = None


def create_app(pipeline: PipelineContext | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="StepQuest Pipeline API",
        description="Leaderboards, rewards and push notifications for the StepQuest step-tracking app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    setup_middleware(app)
    app.include_router(health_router, tags=["Health"])
    app.include_router(leaderboard_router)
    app.include_router(events_router)
    app.include_router(admin_router)

    return app


app = create_app()
