"""Operator endpoints: manual job runs and maintenance."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from stepquest.admin.operations import bootstrap_user, remove_daily_step_goal
from stepquest.dependencies import get_pipeline
from stepquest.pipeline.context import PipelineContext, RunResult
from stepquest.pipeline.registry import SCHEDULED_JOBS, run_job

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _as_response(result: RunResult) -> dict[str, Any]:
    body = asdict(result)
    body["status"] = result.status.value
    return body


@router.get("/jobs")
async def list_jobs() -> dict[str, list[str]]:
    return {"jobs": sorted(SCHEDULED_JOBS)}


@router.post("/jobs/{name}")
async def trigger_job(
    name: str,
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> dict[str, Any]:
    """Run one scheduled driver now. Period markers keep this safe to repeat."""
    if name not in SCHEDULED_JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown job: {name}")
    return _as_response(await run_job(name, ctx))


@router.post("/users/{user_id}/bootstrap")
async def bootstrap(
    user_id: str,
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> dict[str, Any]:
    return _as_response(await bootstrap_user(ctx, user_id))


@router.post("/migrations/remove-daily-step-goal")
async def migrate_remove_daily_step_goal(
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> dict[str, Any]:
    return _as_response(await remove_daily_step_goal(ctx))
