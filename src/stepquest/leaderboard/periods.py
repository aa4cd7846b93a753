"""Calendar period keys computed in one fixed time zone.

Day keys are ``YYYY-MM-DD``, month keys ``YYYY-MM`` and a week is identified
by the date of its ISO Monday (``YYYY-MM-DD``). All keys are derived after
converting the reference instant into the configured zone, so the host's
local zone never leaks into a period boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo


@dataclass(frozen=True)
class PeriodKeys:
    """Keys of every calendar unit containing one instant."""

    day_key: str
    month_key: str
    week_key: str
    week_start: date
    day_of_year: int
    hour: int


def to_zone(now: datetime, tz: tzinfo) -> datetime:
    """Convert an aware instant into the given zone. Naive datetimes are rejected."""
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("Reference instant must be timezone-aware")
    return now.astimezone(tz)


def get_monday(d: date) -> date:
    """Get the Monday of the ISO week containing d."""
    return d - timedelta(days=d.weekday())


def day_key(d: date) -> str:
    return d.isoformat()


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def week_key(d: date) -> str:
    """ISO week identity: the Monday of the week containing d."""
    return get_monday(d).isoformat()


def resolve_periods(now: datetime, tz: tzinfo) -> PeriodKeys:
    """Resolve the day, week and month keys of ``now`` in zone ``tz``."""
    local = to_zone(now, tz)
    today = local.date()
    return PeriodKeys(
        day_key=day_key(today),
        month_key=month_key(today),
        week_key=week_key(today),
        week_start=get_monday(today),
        day_of_year=today.timetuple().tm_yday,
        hour=local.hour,
    )


def previous_day_key(now: datetime, tz: tzinfo) -> str:
    """Day key of the calendar day before ``now`` (the day a midnight run settles)."""
    return day_key(to_zone(now, tz).date() - timedelta(days=1))


def previous_week_key(now: datetime, tz: tzinfo) -> str:
    """Week key of the ISO week before the one containing ``now``."""
    return week_key(to_zone(now, tz).date() - timedelta(weeks=1))


def epoch_millis(now: datetime) -> int:
    """Milliseconds since the epoch, the unit of stored baseline timestamps."""
    if now.tzinfo is None:
        raise ValueError("Reference instant must be timezone-aware")
    return int(now.timestamp() * 1000)
