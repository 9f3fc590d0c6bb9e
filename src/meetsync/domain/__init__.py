"""Domain records shared through the synced collections."""

from __future__ import annotations

from .enums import CATEGORIES, Category
from .models import (
    CAPACITY,
    CancelRequest,
    EventItem,
    MalformedSnapshotError,
    Participant,
    User,
    decode_events,
    decode_users,
    encode_events,
    encode_users,
)

__all__ = [
    "CAPACITY",
    "CATEGORIES",
    "CancelRequest",
    "Category",
    "EventItem",
    "MalformedSnapshotError",
    "Participant",
    "User",
    "decode_events",
    "decode_users",
    "encode_events",
    "encode_users",
]
