"""Evening goal reminder: at 20:00, warn users still short of today's goal."""

from __future__ import annotations

from datetime import datetime

import structlog

from stepquest.errors import StoreError
from stepquest.leaderboard.periods import epoch_millis, resolve_periods
from stepquest.notifications import messages
from stepquest.notifications.guard import GOAL_REMINDER
from stepquest.notifications.messages import NotificationContent
from stepquest.pipeline.context import (
    PipelineContext,
    RunResult,
    RunStatus,
    commit_batch,
    load_user,
    prune_rejected_tokens,
)
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()

DRIVER = "goal_reminders"


async def send_goal_reminders(ctx: PipelineContext, now: datetime | None = None) -> RunResult:
    now = now or ctx.now()
    periods = resolve_periods(now, ctx.zone)
    day_key = periods.day_key
    log = logger.bind(driver=DRIVER, period_key=day_key)

    if periods.hour != ctx.settings.goal_reminder_hour:
        log.info("outside_goal_reminder_hour", hour=periods.hour)
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)

    batch = WriteBatch()
    due: list[tuple[str, str, NotificationContent]] = []
    try:
        async for doc in ctx.store.stream_users():
            user = load_user(doc)
            if user is None or not user.fcm_token:
                continue
            if not GOAL_REMINDER.should_fire(doc.data, day_key):
                continue
            goal = user.goal_for(periods.month_key, ctx.settings.default_goal_steps)
            if user.steps_on(day_key) >= goal:
                continue
            GOAL_REMINDER.mark(batch, user.id, day_key)
            due.append((user.id, user.fcm_token, messages.goal_reminder(goal, epoch_millis(now))))
    except StoreError as exc:
        log.error("users_read_failed", error=str(exc))
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=str(exc))

    if not due:
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)

    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=error)

    delivery = ctx.dispatcher.start_round()
    for user_id, token, content in due:
        await delivery.send(user_id, token, content)

    pruned = await prune_rejected_tokens(ctx.store, delivery, log)
    log.info("goal_reminders_sent", sent=delivery.sent, due=len(due))
    return RunResult(DRIVER, RunStatus.COMMITTED, day_key, processed=len(due), notified=delivery.sent, pruned=pruned)
