from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Iterable, List

from ..domain import CATEGORIES, Category, EventItem
from .civil_time import CIVIL_OFFSET, civil_today, compare_dates, start_instant
from .recurrence import group_series


def project(
    events: Iterable[EventItem],
    now: datetime,
    *,
    offset: timedelta = CIVIL_OFFSET,
) -> Dict[Category, List[EventItem]]:
    """Group visible events by category.

    Each series contributes every occurrence that has already started (or has
    no time of day) plus only its nearest future occurrence. Buckets exist for
    every category and are sorted by (date, time).
    """

    buckets: Dict[Category, List[EventItem]] = {category: [] for category in CATEGORIES}
    for members in group_series(events).values():
        reached: List[EventItem] = []
        future: List[EventItem] = []
        for member in members:
            if member.time is None or start_instant(member, offset=offset) <= now:
                reached.append(member)
            else:
                future.append(member)
        visible = reached
        if future:
            visible = reached + [min(future, key=lambda item: item.sort_key)]
        for event in visible:
            buckets[event.category].append(event)

    for bucket in buckets.values():
        bucket.sort(key=lambda item: item.sort_key)
    return buckets


def upcoming(
    events: Iterable[EventItem],
    now: datetime,
    *,
    offset: timedelta = CIVIL_OFFSET,
) -> List[EventItem]:
    """Events dated today or later in civil time, oldest first."""

    today = civil_today(now, offset=offset)
    visible = [event for event in events if compare_dates(event.date, today) >= 0]
    return sorted(visible, key=lambda item: item.sort_key)


__all__ = ["project", "upcoming"]
