"""Pure calendar logic: civil time, recurrence, projection and roster changes."""

from .civil_time import (
    CIVIL_OFFSET,
    add_civil_days_safe,
    civil_today,
    compare_dates,
    from_instant,
    start_instant,
    to_instant,
)
from .projection import project, upcoming
from .recurrence import RETENTION_WINDOW, generate_event_id, group_series, series_key, tick

__all__ = [
    "CIVIL_OFFSET",
    "RETENTION_WINDOW",
    "add_civil_days_safe",
    "civil_today",
    "compare_dates",
    "from_instant",
    "generate_event_id",
    "group_series",
    "project",
    "series_key",
    "start_instant",
    "tick",
    "to_instant",
    "upcoming",
]
