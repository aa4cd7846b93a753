"""Inactivity reminders: every two hours, nudge users who barely moved.

Quiet hours run from midnight until ``inactivity_quiet_until_hour``.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from stepquest.errors import StoreError
from stepquest.leaderboard.periods import epoch_millis, resolve_periods
from stepquest.notifications import messages
from stepquest.notifications.guard import InactivityWindow
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

DRIVER = "inactivity_reminders"


async def send_inactivity_reminders(ctx: PipelineContext, now: datetime | None = None) -> RunResult:
    now = now or ctx.now()
    periods = resolve_periods(now, ctx.zone)
    day_key = periods.day_key
    log = logger.bind(driver=DRIVER, period_key=day_key)

    if periods.hour < ctx.settings.inactivity_quiet_until_hour:
        log.info("inactivity_quiet_hours", hour=periods.hour)
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)

    window = InactivityWindow.from_minutes(
        ctx.settings.inactivity_window_minutes,
        ctx.settings.inactivity_min_steps,
    )
    now_ms = epoch_millis(now)
    batch = WriteBatch()
    due: list[tuple[str, str, NotificationContent]] = []
    processed = 0

    try:
        async for doc in ctx.store.stream_users():
            user = load_user(doc)
            if user is None or not user.fcm_token:
                continue
            decision = window.evaluate(doc.data, day_key, user.steps_on(day_key), now_ms)
            window.record(batch, user.id, decision)
            processed += 1
            if decision.fire:
                due.append((user.id, user.fcm_token, messages.inactivity(day_key, ctx.rng)))
    except StoreError as exc:
        log.error("users_read_failed", error=str(exc))
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=str(exc))

    if batch.is_empty:
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key, processed=processed)

    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult(DRIVER, RunStatus.FAILED, day_key, processed=processed, error=error)

    delivery = ctx.dispatcher.start_round()
    for user_id, token, content in due:
        await delivery.send(user_id, token, content)

    pruned = await prune_rejected_tokens(ctx.store, delivery, log)
    log.info("inactivity_reminders_sent", sent=delivery.sent, due=len(due))
    return RunResult(DRIVER, RunStatus.COMMITTED, day_key, processed=processed, notified=delivery.sent, pruned=pruned)
