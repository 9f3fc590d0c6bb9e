from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from ..core import roster
from ..core.projection import project, upcoming
from ..core.recurrence import generate_event_id
from ..domain import Category, EventItem
from .users import UserService

if TYPE_CHECKING:
    from .context import ServiceContext

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EventService:
    context: "ServiceContext"

    @property
    def users(self) -> UserService:
        return UserService(self.context)

    def list_events(self) -> List[EventItem]:
        return list(self.context.events.value)

    def get(self, event_id: int) -> EventItem:
        return roster.find_event(self.context.events.value, event_id)

    def feed(self, *, now: Optional[datetime] = None) -> Dict[Category, List[EventItem]]:
        """Category buckets as shown to members; see ``core.projection.project``."""

        return project(self.context.events.value, now or self.context.clock(), offset=self.context.offset)

    def upcoming(self, *, now: Optional[datetime] = None) -> List[EventItem]:
        return upcoming(self.context.events.value, now or self.context.clock(), offset=self.context.offset)

    def _mutate(self, updater: Callable[[List[EventItem]], List[EventItem]]) -> None:
        self.context.events.set_value(updater)

    async def _mutate_now(self, updater: Callable[[List[EventItem]], List[EventItem]]) -> None:
        task = self.context.events.set_value(updater, immediate=True)
        if task is not None:
            await task

    # Member actions

    def join(self, event_id: int, user_id: int) -> EventItem:
        user = self.users.get(user_id)
        self._mutate(lambda events: roster.join(events, event_id, user))
        logger.info("%s joined event %d", user.name, event_id)
        return self.get(event_id)

    def apply_for_slot(self, event_id: int, user_id: int) -> EventItem:
        user = self.users.get(user_id)
        self._mutate(lambda events: roster.apply_for_slot(events, event_id, user))
        logger.info("%s took an open slot on event %d", user.name, event_id)
        return self.get(event_id)

    def request_cancel(self, event_id: int, user_id: int, reason: str = roster.DEFAULT_CANCEL_REASON) -> EventItem:
        user = self.users.get(user_id)
        self._mutate(lambda events: roster.request_cancel(events, event_id, user, reason))
        return self.get(event_id)

    # Admin actions

    def approve_cancel(self, event_id: int, user_id: int, *, admin_id: int) -> EventItem:
        self.users.require_admin(admin_id)
        self._mutate(lambda events: roster.approve_cancel(events, event_id, user_id))
        logger.info("Approved cancellation of user %d on event %d", user_id, event_id)
        return self.get(event_id)

    def remove_participant(self, event_id: int, user_id: int, *, admin_id: int) -> EventItem:
        self.users.require_admin(admin_id)
        self._mutate(lambda events: roster.remove_participant(events, event_id, user_id))
        logger.info("Removed user %d from event %d", user_id, event_id)
        return self.get(event_id)

    def notify_all(self, event_id: int, *, admin_id: int) -> EventItem:
        self.users.require_admin(admin_id)
        self._mutate(lambda events: roster.notify_all(events, event_id))
        # Delivery is simulated; the flag is what members see.
        logger.info("Open-slot notification sent to all members for event %d", event_id)
        return self.get(event_id)

    async def create_event(self, draft: roster.EventDraft, *, admin_id: int) -> EventItem:
        self.users.require_admin(admin_id)
        members = self.users.list_users()
        now = self.context.clock()
        created: List[EventItem] = []

        def _append(events: List[EventItem]) -> List[EventItem]:
            event_id = generate_event_id({event.id for event in events}, now)
            event = roster.build_event(draft, members, event_id)
            created.append(event)
            return [*events, event]

        await self._mutate_now(_append)
        logger.info("Created event %d %r on %s", created[0].id, created[0].title, created[0].date)
        return created[0]

    def update_event(self, event_id: int, draft: roster.EventDraft, *, admin_id: int) -> EventItem:
        self.users.require_admin(admin_id)
        members = self.users.list_users()
        self._mutate(lambda events: roster.apply_edit(events, event_id, draft, members))
        return self.get(event_id)

    async def delete_event(self, event_id: int, *, admin_id: int) -> None:
        self.users.require_admin(admin_id)
        await self._mutate_now(lambda events: roster.delete_event(events, event_id))
        logger.info("Deleted event %d", event_id)
