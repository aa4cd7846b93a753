"""Fixed rank-tier coin payouts and leaderboard history.

Daily:  1st 100, 2nd 75, 3rd 50
Weekly: 1st 500, 2nd 350, 3rd 250
Ranks past the table earn nothing.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import structlog

from stepquest.leaderboard.schemas import HistoryRecord, LeaderboardEntry, PeriodKind
from stepquest.store import fields
from stepquest.store.documents import WriteBatch

logger = structlog.get_logger()

DAILY_PAYOUTS: tuple[int, ...] = (100, 75, 50)
WEEKLY_PAYOUTS: tuple[int, ...] = (500, 350, 250)

PAYOUT_TABLES: dict[PeriodKind, tuple[int, ...]] = {
    "daily": DAILY_PAYOUTS,
    "weekly": WEEKLY_PAYOUTS,
}


def payout_for(rank: int, table: Sequence[int]) -> int:
    """Coins for a 1-indexed rank; 0 outside the table."""
    if rank < 1 or rank > len(table):
        return 0
    return table[rank - 1]


def with_payouts(entries: Sequence[LeaderboardEntry], kind: PeriodKind) -> list[LeaderboardEntry]:
    """Copy of ``entries`` with the period's payout filled in."""
    table = PAYOUT_TABLES[kind]
    return [entry.model_copy(update={"reward": payout_for(entry.rank, table)}) for entry in entries]


class RewardLedger:
    """Queues coin grants and the period's history record on a write batch."""

    def grant(
        self,
        batch: WriteBatch,
        kind: PeriodKind,
        period_key: str,
        entries: Sequence[LeaderboardEntry],
        now: datetime,
    ) -> list[LeaderboardEntry]:
        """Enqueue one additive balance grant per paid entry plus one history record.

        Returns the entries with payouts. An empty ranking queues nothing.
        """
        if not entries:
            return []

        winners = with_payouts(entries, kind)
        for winner in winners:
            if winner.reward > 0:
                batch.increment(winner.user_id, fields.COINS, winner.reward)

        batch.add_history(HistoryRecord(kind=kind, period_key=period_key, winners=winners, created_at=now))
        logger.debug("rewards_queued", kind=kind, period_key=period_key, winners=len(winners))
        return winners
