"""Payload models and serializers for the HTTP surface."""

from __future__ import annotations

from .models import (
    AdminUserRequest,
    CancelRequestBody,
    CredentialsRequest,
    EventDraftRequest,
    EventPayload,
    UserPayload,
)
from .serializers import serialize_event, serialize_events, serialize_feed, serialize_user

__all__ = [
    "AdminUserRequest",
    "CancelRequestBody",
    "CredentialsRequest",
    "EventDraftRequest",
    "EventPayload",
    "UserPayload",
    "serialize_event",
    "serialize_events",
    "serialize_feed",
    "serialize_user",
]
