"""Daily fact: one walking fact per user per day at 17:00."""

from __future__ import annotations

from datetime import datetime

import structlog

from stepquest.errors import StoreError
from stepquest.leaderboard.periods import resolve_periods, to_zone
from stepquest.notifications import messages
from stepquest.notifications.guard import DAILY_FACT
from stepquest.pipeline.context import PipelineContext, RunResult, RunStatus, commit_batch, prune_rejected_tokens
from stepquest.store import fields
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()

DRIVER = "daily_facts"


async def send_daily_facts(ctx: PipelineContext, now: datetime | None = None) -> RunResult:
    now = now or ctx.now()
    periods = resolve_periods(now, ctx.zone)
    day_key = periods.day_key
    category, fact = messages.pick_fact(periods.day_of_year, to_zone(now, ctx.zone).day)
    log = logger.bind(driver=DRIVER, period_key=day_key)

    batch = WriteBatch()
    due: list[tuple[str, str]] = []
    try:
        async for doc in ctx.store.stream_users():
            token = doc.data.get(fields.FCM_TOKEN)
            if not token or not DAILY_FACT.should_fire(doc.data, day_key):
                continue
            DAILY_FACT.mark(batch, doc.id, day_key, **{fields.LAST_DAILY_FACT_CATEGORY: category})
            due.append((doc.id, token))
    except StoreError as exc:
        log.error("users_read_failed", error=str(exc))
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=str(exc))

    if not due:
        log.info("no_daily_facts_due")
        return RunResult(DRIVER, RunStatus.SKIPPED, day_key)

    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult(DRIVER, RunStatus.FAILED, day_key, error=error)

    content = messages.daily_fact(category, fact, day_key)
    delivery = ctx.dispatcher.start_round()
    for user_id, token in due:
        await delivery.send(user_id, token, content)

    pruned = await prune_rejected_tokens(ctx.store, delivery, log)
    log.info("daily_facts_sent", sent=delivery.sent, failed=delivery.failed)
    return RunResult(DRIVER, RunStatus.COMMITTED, day_key, processed=len(due), notified=delivery.sent, pruned=pruned)
