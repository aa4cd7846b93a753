"""arq worker running the scheduled pipeline drivers.

Cron times are evaluated in ``Settings.timezone``, so midnight settlement
happens at local midnight whatever zone the worker host runs in.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import structlog
from arq import cron
from arq.connections import RedisSettings
from arq.cron import CronJob

from stepquest.config import get_settings
from stepquest.middleware.logging import setup_logging
from stepquest.pipeline.context import PipelineContext
from stepquest.pipeline.registry import SCHEDULED_JOBS, ScheduledJob, run_job
from stepquest.runtime import start_runtime, stop_runtime

logger = structlog.get_logger()


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Build the pipeline context once for the worker's lifetime."""
    settings = get_settings()
    setup_logging(settings, component="worker")
    ctx["pipeline"] = await start_runtime(settings)
    logger.info("scheduler_started", jobs=sorted(SCHEDULED_JOBS))


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    pipeline: PipelineContext | None = ctx.get("pipeline")
    if pipeline:
        await stop_runtime(pipeline)
    logger.info("scheduler_stopped")


def _task(job: ScheduledJob):  # type: ignore[no-untyped-def]
    async def run(ctx: dict) -> dict[str, Any]:  # type: ignore[type-arg]
        # Driver logs carry the job name and the arq attempt
        with structlog.contextvars.bound_contextvars(job=job.name, job_try=ctx.get("job_try", 1)):
            result = await run_job(job.name, ctx["pipeline"])
            logger.info(
                "job_finished",
                status=result.status.value,
                period_key=result.period_key,
                notified=result.notified,
            )
        return {**asdict(result), "status": result.status.value}

    run.__qualname__ = run.__name__ = job.name
    return run


def build_cron_jobs() -> list[CronJob]:
    return [
        cron(
            _task(job),
            name=job.name,
            hour=job.hour,
            minute=job.minute,
            weekday=job.weekday,
            unique=True,
        )
        for job in SCHEDULED_JOBS.values()
    ]


class WorkerSettings:
    """arq worker settings for the scheduled drivers."""

    _settings = get_settings()

    cron_jobs = build_cron_jobs()
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(_settings.redis_url)
    timezone = _settings.zone
    max_jobs = 4
    job_timeout = 600
