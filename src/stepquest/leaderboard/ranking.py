"""Deterministic step ranking.

Users are ranked by the selected counter DESC, then by user id ASC as the
tiebreaker. A missing counter counts as 0: the user stays eligible but
ranks after everyone with steps.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, func

from stepquest.leaderboard.schemas import LeaderboardEntry, PeriodKind, UserRecord
from stepquest.store import fields


@dataclass(frozen=True)
class CounterSelector:
    """Which counter a ranking reads: one day of ``daily_steps`` or ``weekly_steps``."""

    kind: PeriodKind
    day_key: str | None = None

    @classmethod
    def daily(cls, day_key: str) -> CounterSelector:
        return cls(kind="daily", day_key=day_key)

    @classmethod
    def weekly(cls) -> CounterSelector:
        return cls(kind="weekly")

    def value(self, data: dict[str, Any]) -> int:
        """Read the counter from a raw document, 0 when absent."""
        if self.kind == "daily":
            raw = (data.get(fields.DAILY_STEPS) or {}).get(self.day_key)
        else:
            raw = data.get(fields.WEEKLY_STEPS)
        return int(raw or 0)

    def of(self, user: UserRecord) -> int:
        if self.kind == "daily":
            return user.steps_on(self.day_key or "")
        return user.weekly_steps

    def sql_value(self, document: Any) -> ColumnElement[int]:
        """The same counter as a SQL expression over a JSON document column."""
        if self.kind == "daily":
            expr = document[(fields.DAILY_STEPS, self.day_key)].as_integer()
        else:
            expr = document[fields.WEEKLY_STEPS].as_integer()
        return func.coalesce(expr, 0)


def sort_key(user_id: str, steps: int) -> tuple[int, str]:
    return (-steps, user_id)


def rank_users(
    users: Iterable[UserRecord],
    selector: CounterSelector,
    limit: int,
) -> list[LeaderboardEntry]:
    """Rank users and return the top ``limit`` as leaderboard entries without payouts.

    Ranks are 1-indexed and contiguous; equal counters get distinct ranks
    ordered by user id.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    scored = [(user, selector.of(user)) for user in users]
    if not scored:
        return []

    scored.sort(key=lambda pair: sort_key(pair[0].id, pair[1]))
    return [
        LeaderboardEntry(rank=idx + 1, user_id=user.id, name=user.name, steps=steps)
        for idx, (user, steps) in enumerate(scored[:limit])
    ]
