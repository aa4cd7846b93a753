"""Process startup and shutdown for the API and the worker.

Each entry point calls ``start_runtime`` exactly once and passes the
resulting context into every driver and router.
"""

from __future__ import annotations

import structlog

from stepquest.config import Settings
from stepquest.database import close_db, get_session_factory, init_db
from stepquest.notifications.push import NotificationDispatcher, PushGateway, create_gateway
from stepquest.pipeline.context import PipelineContext
from stepquest.store.documents import SqlDocumentStore

logger = structlog.get_logger()


async def start_runtime(settings: Settings, gateway: PushGateway | None = None) -> PipelineContext:
    """Open the database pool and the push gateway; build the pipeline context."""
    await init_db(settings.database_url)
    gateway = gateway or create_gateway(settings)
    ctx = PipelineContext(
        store=SqlDocumentStore(get_session_factory()),
        dispatcher=NotificationDispatcher(gateway),
        settings=settings,
    )
    logger.info("runtime_started", timezone=settings.timezone, push_mode=settings.push_mode)
    return ctx


async def stop_runtime(ctx: PipelineContext) -> None:
    await ctx.dispatcher.aclose()
    await close_db()
    logger.info("runtime_stopped")
