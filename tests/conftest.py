"""Shared fixtures: a fixed clock, sample users/events, and an in-memory store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List

import pytest

from meetsync.config import AppSettings, LogSettings, ServerSettings, SupabaseSettings, SyncSettings
from meetsync.data import MemoryStore
from meetsync.domain import Category, EventItem, Participant, User, encode_events, encode_users
from meetsync.services import ServiceContext

KST = timezone(timedelta(hours=9))

# Saturday 2025-08-09, one minute after the 10:00 meetup started.
NOW = datetime(2025, 8, 9, 10, 1, tzinfo=KST)

ADMIN_ID = 1


def build_users() -> List[User]:
    return [
        User(id=ADMIN_ID, name="Admin", password="secret", is_admin=True),
        User(id=2, name="Minji", password="pw2"),
        User(id=3, name="Joon", password="pw3"),
        User(id=4, name="Seo", password="pw4"),
        User(id=5, name="Hana", password="pw5"),
        User(id=6, name="Tae", password="pw6"),
    ]


def build_event(
    event_id: int,
    date: str,
    *,
    title: str = "Saturday Meetup",
    time: str | None = "10:00",
    category: Category = Category.SATURDAY,
    repeat_weekly: bool = False,
    participant_ids: Iterable[int] = (),
    **overrides: Any,
) -> EventItem:
    names = {user.id: user.name for user in build_users()}
    participants = [
        Participant(id=uid, name=names.get(uid, f"#{uid}"), leader=index == 0)
        for index, uid in enumerate(participant_ids)
    ]
    fields = dict(
        id=event_id,
        title=title,
        date=date,
        time=time,
        category=category,
        participants=participants,
        open_for_applications=len(participants) < 4,
        repeat_weekly=repeat_weekly,
    )
    fields.update(overrides)
    return EventItem(**fields)


def make_settings(tmp_path: Path, *, debounce_ms: float = 20, tick_seconds: float = 60) -> AppSettings:
    return AppSettings(
        supabase=SupabaseSettings(url=None, anon_key=None),
        sync=SyncSettings(
            debounce=timedelta(milliseconds=debounce_ms),
            tick_interval=timedelta(seconds=tick_seconds),
            retention=timedelta(days=3),
            utc_offset=timedelta(hours=9),
        ),
        server=ServerSettings(host="127.0.0.1", port=8000),
        logging=LogSettings(level="DEBUG", directory=tmp_path / "logs"),
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def users() -> List[User]:
    return build_users()


@pytest.fixture
def make_event() -> Callable[..., EventItem]:
    return build_event


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return make_settings(tmp_path)


@pytest.fixture
def store(users: List[User]) -> MemoryStore:
    events = [
        build_event(100, "2025-08-16", participant_ids=[2, 3]),
        build_event(200, "2025-08-11", title="Monday Stand", time="18:30", category=Category.MONDAY),
    ]
    return MemoryStore({"users": encode_users(users), "events": encode_events(events)})


@pytest.fixture
async def context(store: MemoryStore, settings: AppSettings):
    ctx = ServiceContext(store=store, settings=settings, clock=lambda: NOW)
    await ctx.start(run_recurrence=False)
    try:
        yield ctx
    finally:
        await ctx.close()
