from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from ..domain import Category, EventItem, User
from .models import EventPayload, UserPayload


def serialize_user(user: User) -> Dict[str, Any]:
    return UserPayload.from_domain(user).model_dump(by_alias=True)


def serialize_event(event: EventItem) -> Dict[str, Any]:
    return EventPayload.from_domain(event).model_dump(by_alias=True, mode="json")


def serialize_events(events: Iterable[EventItem]) -> List[Dict[str, Any]]:
    return [serialize_event(event) for event in events]


def serialize_feed(feed: Mapping[Category, Iterable[EventItem]]) -> Dict[str, List[Dict[str, Any]]]:
    return {category.value: serialize_events(events) for category, events in feed.items()}
