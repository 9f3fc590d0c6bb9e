from __future__ import annotations

import pytest

from meetsync.config import get_settings
from meetsync.core.roster import EventDraft, EventFullError, EventNotFoundError, InvalidEventError
from meetsync.data import MemoryStore, SupabaseNotConfiguredError
from meetsync.domain import Category, decode_events, decode_users
from meetsync.services import (
    DuplicateUserError,
    EventService,
    InvalidUserError,
    PermissionDeniedError,
    ServiceContext,
    UnknownUserError,
    UserService,
    build_store,
)

from conftest import ADMIN_ID, NOW


def _draft(**overrides) -> EventDraft:
    fields = dict(
        title="Sunday Brunch",
        date="2025-08-17",
        time="11:00",
        category=Category.SUNDAY,
        participant_ids=[2, 4],
        leader_id=4,
        repeat_weekly=True,
    )
    fields.update(overrides)
    return EventDraft(**fields)


class TestUserService:
    async def test_log_in(self, context: ServiceContext) -> None:
        service = UserService(context)
        assert service.log_in("Minji", "pw2").id == 2
        assert service.log_in("Minji", "wrong") is None
        assert service.log_in("Nobody", "pw2") is None

    async def test_sign_up_assigns_next_id_and_writes_immediately(
        self, context: ServiceContext, store: MemoryStore
    ) -> None:
        user = await UserService(context).sign_up("  Yuna ", "pw7")

        assert (user.id, user.name, user.is_admin) == (7, "Yuna", False)
        [written] = store.writes_for("users")
        assert decode_users(written)[-1] == user

    async def test_sign_up_rejects_taken_name(self, context: ServiceContext, store: MemoryStore) -> None:
        with pytest.raises(DuplicateUserError):
            await UserService(context).sign_up("Minji", "other")
        assert store.writes_for("users") == []

    async def test_sign_up_requires_name_and_password(self, context: ServiceContext) -> None:
        with pytest.raises(InvalidUserError):
            await UserService(context).sign_up("Yuna", "")

    async def test_admin_creates_admin(self, context: ServiceContext) -> None:
        user = await UserService(context).admin_create_user("Boss", "pw", is_admin=True, admin_id=ADMIN_ID)
        assert user.is_admin

    async def test_member_cannot_create_users(self, context: ServiceContext) -> None:
        with pytest.raises(PermissionDeniedError):
            await UserService(context).admin_create_user("Boss", "pw", admin_id=2)

    async def test_unknown_user(self, context: ServiceContext) -> None:
        with pytest.raises(UnknownUserError):
            UserService(context).get(99)


class TestEventServiceMemberActions:
    async def test_join_is_visible_now_and_persisted_after_debounce(
        self, context: ServiceContext, store: MemoryStore
    ) -> None:
        service = EventService(context)

        event = service.join(100, 4)

        assert [p.id for p in event.participants] == [2, 3, 4]
        assert store.writes_for("events") == []
        await context.events.flush()
        [written] = store.writes_for("events")
        stored = {item.id: item for item in decode_events(written)}
        assert [p.id for p in stored[100].participants] == [2, 3, 4]

    async def test_fifth_join_is_rejected_without_change(self, context: ServiceContext) -> None:
        service = EventService(context)
        service.join(100, 4)
        service.join(100, 5)
        before = service.get(100)

        with pytest.raises(EventFullError):
            service.join(100, 6)

        assert service.get(100) == before
        assert before.open_for_applications is False

    async def test_request_cancel_and_admin_approval(self, context: ServiceContext) -> None:
        service = EventService(context)
        service.request_cancel(100, 3, "travel")
        service.request_cancel(100, 3, "travel")
        assert len(service.get(100).cancel_requests) == 1

        event = service.approve_cancel(100, 3, admin_id=ADMIN_ID)

        assert [p.id for p in event.participants] == [2]
        assert event.cancel_requests == []
        assert event.open_for_applications is True

    async def test_members_cannot_run_admin_actions(self, context: ServiceContext) -> None:
        service = EventService(context)
        with pytest.raises(PermissionDeniedError):
            service.remove_participant(100, 3, admin_id=2)
        with pytest.raises(PermissionDeniedError):
            service.notify_all(100, admin_id=3)
        with pytest.raises(PermissionDeniedError):
            await service.delete_event(100, admin_id=2)

    async def test_notify_all_then_apply(self, context: ServiceContext) -> None:
        service = EventService(context)
        service.join(100, 4)
        service.join(100, 5)
        service.remove_participant(100, 5, admin_id=ADMIN_ID)
        event = service.notify_all(100, admin_id=ADMIN_ID)
        assert event.notified_to_all

        event = service.apply_for_slot(100, 6)
        assert [p.id for p in event.participants] == [2, 3, 4, 6]


class TestEventServiceAdminActions:
    async def test_create_event_writes_immediately(self, context: ServiceContext, store: MemoryStore) -> None:
        event = await EventService(context).create_event(_draft(), admin_id=ADMIN_ID)

        assert event.id == int(NOW.timestamp() * 1000)
        assert [(p.id, p.leader) for p in event.participants] == [(2, False), (4, True)]
        [written] = store.writes_for("events")
        assert event.id in {item["id"] for item in written}

    async def test_create_event_validates(self, context: ServiceContext, store: MemoryStore) -> None:
        with pytest.raises(InvalidEventError):
            await EventService(context).create_event(_draft(participant_ids=[]), admin_id=ADMIN_ID)
        assert store.writes_for("events") == []
        assert len(context.events.value) == 2

    async def test_two_events_created_in_one_millisecond_get_distinct_ids(self, context: ServiceContext) -> None:
        service = EventService(context)
        first = await service.create_event(_draft(), admin_id=ADMIN_ID)
        second = await service.create_event(_draft(date="2025-08-24"), admin_id=ADMIN_ID)
        assert second.id == first.id + 1

    async def test_update_event(self, context: ServiceContext) -> None:
        event = EventService(context).update_event(
            200,
            _draft(title="Monday Stand", date="2025-08-11", time="19:00", category=Category.MONDAY),
            admin_id=ADMIN_ID,
        )
        assert event.time == "19:00"
        assert event.repeat_weekly is True

    async def test_delete_event(self, context: ServiceContext, store: MemoryStore) -> None:
        service = EventService(context)
        await service.delete_event(200, admin_id=ADMIN_ID)

        assert [event.id for event in service.list_events()] == [100]
        [written] = store.writes_for("events")
        assert [item["id"] for item in written] == [100]
        with pytest.raises(EventNotFoundError):
            service.get(200)

    async def test_feed_and_upcoming(self, context: ServiceContext) -> None:
        service = EventService(context)
        feed = service.feed()
        assert [event.id for event in feed[Category.SATURDAY]] == [100]
        assert [event.id for event in feed[Category.MONDAY]] == [200]
        assert [event.id for event in service.upcoming()] == [200, 100]


class TestBuildStore:
    def test_offline_uses_memory(self, settings) -> None:
        assert isinstance(build_store(settings, offline=True), MemoryStore)

    def test_missing_supabase_settings(self, settings) -> None:
        with pytest.raises(SupabaseNotConfiguredError):
            build_store(settings)


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("MEETSYNC_DEBOUNCE_MS", "500")
    monkeypatch.setenv("MEETSYNC_UTC_OFFSET_HOURS", "-5")
    monkeypatch.setenv("MEETSYNC_LOG_DIR", str(tmp_path))
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.supabase.is_configured
        assert settings.sync.debounce.total_seconds() == 0.5
        assert settings.sync.utc_offset.total_seconds() == -5 * 3600
        assert settings.logging.directory == tmp_path
    finally:
        get_settings.cache_clear()
