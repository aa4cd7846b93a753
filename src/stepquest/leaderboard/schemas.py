"""Pydantic schemas for user records, leaderboard entries and history."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

PeriodKind = Literal["daily", "weekly"]

UNKNOWN_USER = "Unknown User"

logger = structlog.get_logger()


class UserRecord(BaseModel):
    """Typed read view over a user document. Unknown fields are kept as extras."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    fcm_token: str | None = Field(default=None, alias="fcmToken")
    username: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    profile_image_url: str | None = Field(default=None, alias="profileImageUrl")
    daily_steps: dict[str, int] = Field(default_factory=dict)
    weekly_steps: int = 0
    coins: int | None = None
    monthly_goals: dict[str, dict[str, Any]] = Field(default_factory=dict, alias="monthlyGoals")

    daily_goal_completed_date: str | None = Field(default=None, alias="dailyGoalCompletedDate")
    last_daily_fact_date: str | None = Field(default=None, alias="lastDailyFactDate")
    last_goal_reminder_date: str | None = Field(default=None, alias="lastGoalReminderDate")
    last_inactivity_date: str | None = Field(default=None, alias="lastInactivityDate")
    last_inactivity_steps: int | None = Field(default=None, alias="lastInactivitySteps")
    last_inactivity_timestamp: int | None = Field(default=None, alias="lastInactivityTimestamp")
    last_week_rewarded: str | None = Field(default=None, alias="lastWeekRewarded")

    # Null counters count as 0; the user stays eligible
    @field_validator("daily_steps", mode="before")
    @classmethod
    def _null_daily_steps(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: 0 if steps is None else steps for key, steps in value.items()}
        return value

    @field_validator("weekly_steps", mode="before")
    @classmethod
    def _null_weekly_steps(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("monthly_goals", mode="before")
    @classmethod
    def _null_monthly_goals(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {month: goal or {} for month, goal in value.items()}
        return value

    @classmethod
    def from_document(cls, user_id: str, data: dict[str, Any]) -> UserRecord:
        return cls.model_validate({**data, "id": user_id})

    @property
    def name(self) -> str:
        return self.username or self.display_name or UNKNOWN_USER

    @property
    def balance(self) -> int:
        return self.coins or 0

    def steps_on(self, day_key: str) -> int:
        return int(self.daily_steps.get(day_key) or 0)

    def goal_for(self, month_key: str, default: int) -> int:
        """Effective goal: monthlyGoals[month].goalSteps, else the default."""
        goal = (self.monthly_goals.get(month_key) or {}).get("goalSteps")
        if goal is None:
            return default
        try:
            return int(goal)
        except (TypeError, ValueError):
            logger.warning("goal_steps_invalid", user_id=self.id, month_key=month_key, value=goal)
            return default


class LeaderboardEntry(BaseModel):
    """One user's rank and step count within a period. Persisted only inside history."""

    model_config = ConfigDict(populate_by_name=True)

    rank: int
    user_id: str = Field(alias="userId")
    name: str
    steps: int
    reward: int = 0


class HistoryRecord(BaseModel):
    """Immutable snapshot of a period's winners."""

    kind: PeriodKind
    period_key: str
    winners: list[LeaderboardEntry]
    created_at: datetime


# ---------------------------------------------------------------------------
# API schemas
# ---------------------------------------------------------------------------


class LeaderboardRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    name: str
    steps: int
    image: str | None = None
    rank: int


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardRow]
    type: PeriodKind
    period_key: str


class HistoryResponse(BaseModel):
    history: list[HistoryRecord]
