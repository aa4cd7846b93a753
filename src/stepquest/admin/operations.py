"""One-off maintenance operations over user documents."""

from __future__ import annotations

import structlog

from stepquest.pipeline.context import PipelineContext, RunResult, RunStatus, commit_batch
from stepquest.store import fields
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()

# Counters a new user starts with. Existing values are never overwritten.
BOOTSTRAP_DEFAULTS = {
    fields.DAILY_STEPS: {},
    fields.WEEKLY_STEPS: 0,
    fields.COINS: 0,
    fields.LAST_WEEK_REWARDED: None,
}


async def bootstrap_user(ctx: PipelineContext, user_id: str) -> RunResult:
    """Zero-initialise leaderboard counters, creating the document if needed."""
    log = logger.bind(driver="bootstrap_user", user_id=user_id)
    batch = WriteBatch()
    batch.set_default(user_id, BOOTSTRAP_DEFAULTS)
    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult("bootstrap_user", RunStatus.FAILED, error=error)
    log.info("user_bootstrapped")
    return RunResult("bootstrap_user", RunStatus.COMMITTED, processed=1)


async def remove_daily_step_goal(ctx: PipelineContext) -> RunResult:
    """Delete the legacy ``dailyStepGoal`` field from every user in one batch."""
    log = logger.bind(driver="remove_daily_step_goal")
    batch = WriteBatch()
    async for doc in ctx.store.stream_users():
        if fields.LEGACY_DAILY_STEP_GOAL in doc.data:
            batch.delete_field(doc.id, fields.LEGACY_DAILY_STEP_GOAL)

    if batch.is_empty:
        log.info("nothing_to_migrate")
        return RunResult("remove_daily_step_goal", RunStatus.SKIPPED)

    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult("remove_daily_step_goal", RunStatus.FAILED, error=error)
    log.info("legacy_goal_removed", users=len(batch))
    return RunResult("remove_daily_step_goal", RunStatus.COMMITTED, processed=len(batch))
