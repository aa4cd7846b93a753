"""Goal completion: fires on a user-document update that crosses today's goal.

The crossing is read from the event's before/after snapshots; the
once-per-day marker is read from the stored document, so a redelivered
event finds the marker already set.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from stepquest.errors import StoreError
from stepquest.leaderboard.periods import resolve_periods
from stepquest.leaderboard.schemas import UserRecord
from stepquest.notifications import messages
from stepquest.notifications.guard import GOAL_COMPLETED
from stepquest.pipeline.context import PipelineContext, RunResult, RunStatus, commit_batch, prune_rejected_tokens
from stepquest.store import fields
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()

DRIVER = "goal_completion"


def crossed_goal(before_steps: int, after_steps: int, goal: int) -> bool:
    return before_steps < goal <= after_steps


async def notify_daily_goal_completed(
    ctx: PipelineContext,
    user_id: str,
    before: dict[str, Any] | None,
    after: dict[str, Any],
    now: datetime | None = None,
) -> RunResult:
    """Handle one user-document update event.

    Raises ``pydantic.ValidationError`` when a snapshot is malformed.
    """
    now = now or ctx.now()
    periods = resolve_periods(now, ctx.zone)
    day_key = periods.day_key
    log = logger.bind(driver=DRIVER, period_key=day_key, user_id=user_id)

    after_user = UserRecord.from_document(user_id, after)
    before_steps = UserRecord.from_document(user_id, before).steps_on(day_key) if before else 0
    after_steps = after_user.steps_on(day_key)
    goal = after_user.goal_for(periods.month_key, ctx.settings.default_goal_steps)

    if not crossed_goal(before_steps, after_steps, goal):
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)

    try:
        doc = await ctx.store.get(user_id)
    except StoreError as exc:
        log.error("user_read_failed", error=str(exc))
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=str(exc))

    if doc is None:
        log.warning("goal_user_missing")
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)
    token = doc.data.get(fields.FCM_TOKEN)
    if not token or not GOAL_COMPLETED.should_fire(doc.data, day_key):
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)

    batch = WriteBatch()
    GOAL_COMPLETED.mark(batch, user_id, day_key)
    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=error)

    delivery = ctx.dispatcher.start_round()
    await delivery.send(user_id, token, messages.goal_completed(goal, day_key))
    pruned = await prune_rejected_tokens(ctx.store, delivery, log)
    log.info("goal_completed", goal=goal, steps=after_steps)
    return RunResult(DRIVER, RunStatus.COMMITTED, day_key, processed=1, notified=delivery.sent, pruned=pruned)
