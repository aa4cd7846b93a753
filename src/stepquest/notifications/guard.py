"""Per-user trigger gating.

Two disciplines:

* ``PeriodMarker`` stores the last period key a trigger fired for. It fires
  again only once the current key differs, so repeated invocations inside
  one period collapse to a single fire.
* ``InactivityWindow`` keeps a rolling (steps, timestamp) baseline per day
  and fires when a full window passed with too little progress. The
  baseline always advances after a full window, so a missed window never
  carries over into the next one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from stepquest.store import fields
from stepquest.store.documents import WriteBatch


@dataclass(frozen=True)
class PeriodMarker:
    """Last-fired period key stored in one document field."""

    field: str

    def should_fire(self, data: dict[str, Any], period_key: str) -> bool:
        return data.get(self.field) != period_key

    def mark(self, batch: WriteBatch, user_id: str, period_key: str, **extra: Any) -> None:
        batch.set(user_id, {self.field: period_key, **extra})


DAILY_FACT = PeriodMarker(fields.LAST_DAILY_FACT_DATE)
GOAL_COMPLETED = PeriodMarker(fields.DAILY_GOAL_COMPLETED_DATE)
GOAL_REMINDER = PeriodMarker(fields.LAST_GOAL_REMINDER_DATE)
WEEK_REWARDED = PeriodMarker(fields.LAST_WEEK_REWARDED)


@dataclass(frozen=True)
class Baseline:
    day_key: str
    steps: int
    timestamp_ms: int

    def as_fields(self) -> dict[str, Any]:
        return {
            fields.LAST_INACTIVITY_DATE: self.day_key,
            fields.LAST_INACTIVITY_STEPS: self.steps,
            fields.LAST_INACTIVITY_TIMESTAMP: self.timestamp_ms,
        }


@dataclass(frozen=True)
class WindowDecision:
    """Outcome of one rate-window evaluation.

    ``baseline`` is the value to persist, or None when the stored one stays.
    """

    fire: bool
    baseline: Baseline | None
    delta: int | None = None


@dataclass(frozen=True)
class InactivityWindow:
    window_ms: int = 2 * 60 * 60 * 1000
    min_steps: int = 300

    @classmethod
    def from_minutes(cls, minutes: int, min_steps: int) -> InactivityWindow:
        return cls(window_ms=minutes * 60 * 1000, min_steps=min_steps)

    def evaluate(self, data: dict[str, Any], day_key: str, steps: int, now_ms: int) -> WindowDecision:
        current = Baseline(day_key, steps, now_ms)

        # A missing baseline counts as a stale one
        if data.get(fields.LAST_INACTIVITY_DATE) != day_key:
            return WindowDecision(fire=False, baseline=current)

        last_steps = int(data.get(fields.LAST_INACTIVITY_STEPS) or 0)
        last_ts = int(data.get(fields.LAST_INACTIVITY_TIMESTAMP) or 0)
        if now_ms - last_ts < self.window_ms:
            return WindowDecision(fire=False, baseline=None)

        delta = steps - last_steps
        return WindowDecision(fire=delta < self.min_steps, baseline=current, delta=delta)

    def record(self, batch: WriteBatch, user_id: str, decision: WindowDecision) -> None:
        if decision.baseline is not None:
            batch.set(user_id, decision.baseline.as_fields())
