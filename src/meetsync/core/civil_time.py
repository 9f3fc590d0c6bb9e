"""Conversions between civil wall-clock values and absolute instants.

Meetups are scheduled in a single fixed civil zone. All arithmetic here is
done against naive wall-clock values with the offset applied explicitly, so
results never depend on the timezone of the host running the code.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

from ..domain.models import DATE_FORMAT, TIME_FORMAT, EventItem

CIVIL_OFFSET = timedelta(hours=9)


def parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FORMAT).date()


def parse_time(value: str) -> time:
    return datetime.strptime(value, TIME_FORMAT).time()


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        raise ValueError("Instants must be timezone-aware")
    return instant.astimezone(timezone.utc)


def to_instant(civil_date: str, civil_time: Optional[str] = None, *, offset: timedelta = CIVIL_OFFSET) -> datetime:
    """Return the UTC instant for a wall-clock date and time in the civil zone.

    A missing time of day means civil midnight.
    """

    wall_clock = datetime.combine(parse_date(civil_date), parse_time(civil_time) if civil_time else time())
    return (wall_clock - offset).replace(tzinfo=timezone.utc)


def from_instant(instant: datetime, *, offset: timedelta = CIVIL_OFFSET) -> Tuple[str, str]:
    wall_clock = _as_utc(instant).replace(tzinfo=None) + offset
    return wall_clock.strftime(DATE_FORMAT), wall_clock.strftime(TIME_FORMAT)


def add_civil_days_safe(civil_date: str, days: int) -> str:
    """Shift a civil date by whole days, anchored at noon."""

    anchored = datetime.combine(parse_date(civil_date), time(hour=12))
    return (anchored + timedelta(days=days)).strftime(DATE_FORMAT)


def compare_dates(a: str, b: str) -> int:
    # Fixed-width zero-padded dates sort lexically.
    if a == b:
        return 0
    return -1 if a < b else 1


def civil_today(now: datetime, *, offset: timedelta = CIVIL_OFFSET) -> str:
    return from_instant(now, offset=offset)[0]


def start_instant(event: EventItem, *, offset: timedelta = CIVIL_OFFSET) -> datetime:
    return to_instant(event.date, event.time, offset=offset)


__all__ = [
    "CIVIL_OFFSET",
    "add_civil_days_safe",
    "civil_today",
    "compare_dates",
    "from_instant",
    "parse_date",
    "parse_time",
    "start_instant",
    "to_instant",
]
