"""Daily and weekly leaderboard reward distribution.

Daily runs at 00:00 and settles yesterday; weekly runs Monday 00:01 and
settles the ISO week that just ended, then resets every user's weekly
total. The period's history record doubles as the run marker: if it
exists the run is a no-op, and the unique (kind, period) constraint makes
an overlapping run's batch fail as a whole.
"""

from __future__ import annotations

from datetime import datetime

import structlog

from stepquest.errors import StoreError
from stepquest.leaderboard.periods import previous_day_key, previous_week_key
from stepquest.leaderboard.ranking import CounterSelector, rank_users
from stepquest.leaderboard.rewards import RewardLedger
from stepquest.leaderboard.schemas import LeaderboardEntry, PeriodKind, UserRecord
from stepquest.notifications import messages
from stepquest.notifications.guard import WEEK_REWARDED
from stepquest.pipeline.context import (
    PipelineContext,
    RunResult,
    RunStatus,
    commit_batch,
    load_user,
    prune_rejected_tokens,
)
from stepquest.store import fields
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()


async def distribute_daily_rewards(ctx: PipelineContext, now: datetime | None = None) -> RunResult:
    """Scheduled task: pay yesterday's top three."""
    now = now or ctx.now()
    day_key = previous_day_key(now, ctx.zone)
    return await _distribute(ctx, "daily", day_key, CounterSelector.daily(day_key), now)


async def distribute_weekly_rewards(ctx: PipelineContext, now: datetime | None = None) -> RunResult:
    """Scheduled task: pay last week's top three and reset weekly totals."""
    now = now or ctx.now()
    week_key = previous_week_key(now, ctx.zone)
    return await _distribute(ctx, "weekly", week_key, CounterSelector.weekly(), now)


async def _distribute(
    ctx: PipelineContext,
    kind: PeriodKind,
    period_key: str,
    selector: CounterSelector,
    now: datetime,
) -> RunResult:
    driver = f"{kind}_rewards"
    log = logger.bind(driver=driver, period_key=period_key)
    batch = WriteBatch()

    try:
        if await ctx.store.history_exists(kind, period_key):
            log.info("rewards_already_distributed")
            return RunResult(driver, RunStatus.SKIPPED, period_key)

        users = await _top_valid_users(ctx, selector, log)
        if not users:
            log.info("no_users_for_rewards")
            return RunResult(driver, RunStatus.SKIPPED, period_key)

        ranked = rank_users(users, selector, ctx.settings.top_n)
        winners = RewardLedger().grant(batch, kind, period_key, ranked, now)

        if kind == "weekly":
            for winner in winners:
                WEEK_REWARDED.mark(batch, winner.user_id, period_key)
            async for doc in ctx.store.stream_users():
                batch.set(doc.id, {fields.WEEKLY_STEPS: 0})
    except StoreError as exc:
        log.error("rewards_read_failed", error=str(exc))
        return RunResult(driver, RunStatus.FAILED, period_key, error=str(exc))

    error = await commit_batch(ctx.store, batch, log)
    if error is not None:
        return RunResult(driver, RunStatus.FAILED, period_key, error=error)
    log.info("rewards_distributed", winners=[w.model_dump(by_alias=True) for w in winners])

    notified, pruned = await _notify_winners(ctx, kind, period_key, winners, log)
    return RunResult(driver, RunStatus.COMMITTED, period_key, processed=len(winners), notified=notified, pruned=pruned)


async def _top_valid_users(
    ctx: PipelineContext,
    selector: CounterSelector,
    log: structlog.stdlib.BoundLogger,
) -> list[UserRecord]:
    """The top ``top_n`` parseable users; a malformed document gives its place to the next one."""
    wanted = ctx.settings.top_n
    limit = wanted
    while True:
        docs = await ctx.store.top_users(selector, limit)
        users = [user for user in (load_user(doc) for doc in docs) if user is not None]
        if len(users) >= wanted or len(docs) < limit:
            break
        log.warning("ranking_refetch", skipped=len(docs) - len(users))
        limit += wanted - len(users)
    return users


async def _notify_winners(
    ctx: PipelineContext,
    kind: PeriodKind,
    period_key: str,
    winners: list[LeaderboardEntry],
    log: structlog.stdlib.BoundLogger,
) -> tuple[int, int]:
    """Send congratulations after the commit. Failures never undo the grant."""
    delivery = ctx.dispatcher.start_round()
    for winner in winners:
        try:
            doc = await ctx.store.get(winner.user_id)
        except StoreError as exc:
            log.warning("winner_lookup_failed", user_id=winner.user_id, error=str(exc))
            continue
        token = doc.data.get(fields.FCM_TOKEN) if doc else None
        if not token:
            continue

        if kind == "daily":
            content = messages.daily_reward(winner, period_key)
        else:
            content = messages.weekly_reward(winner, period_key)
        await delivery.send(winner.user_id, token, content)

    pruned = await prune_rejected_tokens(ctx.store, delivery, log)
    return delivery.sent, pruned
