"""Scheduled drivers by job name, with their cron schedules in the fixed zone."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from stepquest.pipeline.context import PipelineContext, RunResult
from stepquest.pipeline.facts import send_daily_facts
from stepquest.pipeline.inactivity import send_inactivity_reminders
from stepquest.pipeline.reminders import send_goal_reminders
from stepquest.pipeline.rewards import distribute_daily_rewards, distribute_weekly_rewards

Driver = Callable[[PipelineContext, datetime | None], Awaitable[RunResult]]


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    driver: Driver
    # arq cron fields; None means "every"
    hour: int | set[int] | None
    minute: int
    weekday: int | None = None


SCHEDULED_JOBS: dict[str, ScheduledJob] = {
    job.name: job
    for job in (
        ScheduledJob("distribute_daily_rewards", distribute_daily_rewards, hour=0, minute=0),
        ScheduledJob("distribute_weekly_rewards", distribute_weekly_rewards, hour=0, minute=1, weekday=0),
        ScheduledJob("send_daily_facts", send_daily_facts, hour=17, minute=0),
        ScheduledJob("send_inactivity_reminders", send_inactivity_reminders, hour=set(range(0, 24, 2)), minute=0),
        ScheduledJob("send_goal_reminders", send_goal_reminders, hour=20, minute=0),
    )
}


async def run_job(name: str, ctx: PipelineContext, now: datetime | None = None) -> RunResult:
    """Run a scheduled driver by name. Raises KeyError for an unknown name."""
    return await SCHEDULED_JOBS[name].driver(ctx, now)
