"""Pruning of expired events and materialization of weekly series."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..domain import CAPACITY, Category, EventItem, Participant
from .civil_time import CIVIL_OFFSET, add_civil_days_safe, civil_today, compare_dates, start_instant

logger = logging.getLogger(__name__)

RETENTION_WINDOW = timedelta(days=3)
REPEAT_INTERVAL_DAYS = 7

SeriesKey = Tuple[str, Optional[str], Category]


def series_key(event: EventItem) -> SeriesKey:
    return (event.title, event.time, event.category)


def group_series(events: Iterable[EventItem]) -> Dict[SeriesKey, List[EventItem]]:
    """Partition events by (title, time, category), keeping input order."""

    series: Dict[SeriesKey, List[EventItem]] = {}
    for event in events:
        series.setdefault(series_key(event), []).append(event)
    return series


def generate_event_id(existing_ids: Set[int], now: datetime) -> int:
    """Return an id derived from ``now`` in epoch milliseconds that is not in ``existing_ids``."""

    candidate = int(now.timestamp() * 1000)
    while candidate in existing_ids:
        candidate += 1
    return candidate


def is_expired(
    event: EventItem,
    now: datetime,
    *,
    retention: timedelta = RETENTION_WINDOW,
    offset: timedelta = CIVIL_OFFSET,
) -> bool:
    if event.time is None:
        cutoff = add_civil_days_safe(civil_today(now, offset=offset), -retention.days)
        return compare_dates(event.date, cutoff) < 0
    return now - start_instant(event, offset=offset) > retention


def _next_occurrence(member: EventItem, event_id: int, next_date: str) -> EventItem:
    participants = [Participant(p.id, p.name, p.leader) for p in member.participants]
    return replace(
        member,
        id=event_id,
        date=next_date,
        participants=participants,
        cancel_requests=[],
        notified_to_all=False,
        open_for_applications=len(participants) < CAPACITY,
    )


def tick(
    events: Iterable[EventItem],
    now: datetime,
    *,
    retention: timedelta = RETENTION_WINDOW,
    offset: timedelta = CIVIL_OFFSET,
) -> List[EventItem]:
    """Prune expired events and add the next weekly occurrence of each repeating series.

    The input is not mutated. Running ``tick`` again with the same ``now`` on
    its own output returns an equal collection.
    """

    snapshot = list(events)
    kept = [event for event in snapshot if not is_expired(event, now, retention=retention, offset=offset)]
    if len(kept) != len(snapshot):
        logger.info("Pruned %d expired event(s)", len(snapshot) - len(kept))
    result = list(kept)
    used_ids = {event.id for event in result}

    for key, members in group_series(kept).items():
        if not any(member.repeat_weekly for member in members):
            continue
        ordered = sorted(members, key=lambda item: item.sort_key)
        reached = [member for member in ordered if start_instant(member, offset=offset) <= now]
        if not reached:
            continue
        latest = max(reached, key=lambda item: start_instant(item, offset=offset))
        next_date = add_civil_days_safe(latest.date, REPEAT_INTERVAL_DAYS)
        if any(member.date == next_date and member.time == latest.time for member in members):
            continue
        event_id = generate_event_id(used_ids, now)
        used_ids.add(event_id)
        result.append(_next_occurrence(latest, event_id, next_date))
        logger.info("Materialized %r on %s (series %s)", latest.title, next_date, key[2].value)
    return result


__all__ = [
    "REPEAT_INTERVAL_DAYS",
    "RETENTION_WINDOW",
    "SeriesKey",
    "generate_event_id",
    "group_series",
    "is_expired",
    "series_key",
    "tick",
]
