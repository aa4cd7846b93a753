"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from stepquest.config import Settings, get_settings
from stepquest.database import get_session
from stepquest.dependencies import get_pipeline
from stepquest.pipeline.context import PipelineContext

router = APIRouter()


async def check_database(db: AsyncSession) -> str:
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


async def check_scheduler_redis(redis_url: str) -> str:
    """The arq scheduler's Redis; the cron jobs stall without it."""
    redis = Redis.from_url(redis_url)
    try:
        await redis.ping()
    except Exception as exc:
        return f"error: {exc}"
    finally:
        await redis.aclose()
    return "ok"


def check_push(settings: Settings, pipeline: PipelineContext | None) -> str:
    """Push delivery is usable: the dispatcher is running and FCM has a project."""
    if pipeline is None:
        return "error: pipeline not started"
    if settings.push_mode == "fcm" and not settings.fcm_project_id:
        return "error: fcm_project_id not set"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    pipeline: PipelineContext | None = Depends(get_pipeline),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: the document store, the scheduler's Redis and push delivery."""
    settings = get_settings()
    checks: dict[str, object] = {
        "database": await check_database(db),
        "redis": await check_scheduler_redis(settings.redis_url),
        "push": check_push(settings, pipeline),
    }
    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version, environment and the period time zone."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
        "timezone": settings.timezone,
    }
