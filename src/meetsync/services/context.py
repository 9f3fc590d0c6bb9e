from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List

from ..config import AppSettings, get_settings
from ..data import MemoryStore, RemoteStore, SharedStateChannel, SupabaseNotConfiguredError, SupabaseStore
from ..domain import EventItem, User, decode_events, decode_users, encode_events, encode_users
from .recurrence import RecurrenceRunner

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_store(settings: AppSettings, *, offline: bool = False) -> RemoteStore:
    """Return the Supabase store, or an in-process one when ``offline``."""

    if offline:
        logger.warning("Running offline: state lives in memory and is not shared")
        return MemoryStore()
    if not settings.supabase.is_configured:
        missing = ", ".join(settings.supabase.missing_env_vars)
        raise SupabaseNotConfiguredError(f"Supabase is not configured; set {missing}")
    return SupabaseStore(settings.supabase)


@dataclass(slots=True)
class ServiceContext:
    """Aggregate root for services to share settings, store, and channels."""

    store: RemoteStore
    settings: AppSettings = field(default_factory=get_settings)
    clock: Clock = utc_now
    users: SharedStateChannel[List[User]] = field(init=False)
    events: SharedStateChannel[List[EventItem]] = field(init=False)
    recurrence: RecurrenceRunner = field(init=False)

    def __post_init__(self) -> None:
        sync = self.settings.sync
        debounce = sync.debounce.total_seconds()
        self.users = SharedStateChannel(
            self.store,
            sync.users_key,
            default=[],
            decode=decode_users,
            encode=encode_users,
            debounce=debounce,
        )
        self.events = SharedStateChannel(
            self.store,
            sync.events_key,
            default=[],
            decode=decode_events,
            encode=encode_events,
            debounce=debounce,
        )
        self.recurrence = RecurrenceRunner(
            self.events,
            clock=self.clock,
            interval=sync.tick_interval.total_seconds(),
            retention=sync.retention,
            offset=sync.utc_offset,
        )

    @property
    def offset(self) -> timedelta:
        return self.settings.sync.utc_offset

    async def start(self, *, run_recurrence: bool = True) -> None:
        await asyncio.gather(self.users.load(), self.events.load())
        if run_recurrence:
            self.recurrence.start()

    async def close(self) -> None:
        try:
            await self.recurrence.stop()
        finally:
            await asyncio.gather(self.users.aclose(), self.events.aclose())
