"""Application services orchestrating channels and domain logic."""

from __future__ import annotations

from .context import ServiceContext, build_store, utc_now
from .events import EventService
from .recurrence import RecurrenceRunner
from .users import (
    DuplicateUserError,
    InvalidUserError,
    PermissionDeniedError,
    UnknownUserError,
    UserError,
    UserService,
)

__all__ = [
    "DuplicateUserError",
    "EventService",
    "InvalidUserError",
    "PermissionDeniedError",
    "RecurrenceRunner",
    "ServiceContext",
    "UnknownUserError",
    "UserError",
    "UserService",
    "build_store",
    "utc_now",
]
