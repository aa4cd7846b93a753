"""Leaderboard read API: live daily/weekly standings and settled history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from stepquest.dependencies import get_pipeline
from stepquest.leaderboard.periods import resolve_periods
from stepquest.leaderboard.ranking import CounterSelector, rank_users
from stepquest.leaderboard.schemas import (
    HistoryResponse,
    LeaderboardResponse,
    LeaderboardRow,
    PeriodKind,
)
from stepquest.pipeline.context import PipelineContext, load_user

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    type: PeriodKind = Query("daily"),  # noqa: A002
    limit: int = Query(10, ge=1, le=100),
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> LeaderboardResponse:
    """Today's (or this week's) standings in the configured zone."""
    periods = resolve_periods(ctx.now(), ctx.zone)
    if type == "daily":
        selector = CounterSelector.daily(periods.day_key)
        period_key = periods.day_key
    else:
        selector = CounterSelector.weekly()
        period_key = periods.week_key

    limit = min(limit, ctx.settings.leaderboard_max_limit)
    docs = await ctx.store.top_users(selector, limit)
    users = {user.id: user for user in (load_user(doc) for doc in docs) if user is not None}
    entries = rank_users(users.values(), selector, limit)

    rows = [
        LeaderboardRow(
            user_id=entry.user_id,
            name=entry.name,
            steps=entry.steps,
            image=users[entry.user_id].profile_image_url,
            rank=entry.rank,
        )
        for entry in entries
    ]
    return LeaderboardResponse(leaderboard=rows, type=type, period_key=period_key)


@router.get("/leaderboard/history", response_model=HistoryResponse)
async def get_leaderboard_history(
    type: PeriodKind = Query("daily"),  # noqa: A002
    limit: int = Query(10, ge=1, le=52),
    ctx: PipelineContext = Depends(get_pipeline),  # noqa: B008
) -> HistoryResponse:
    """Most recent settled periods, newest first."""
    return HistoryResponse(history=await ctx.store.list_history(type, limit))
