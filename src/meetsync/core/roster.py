"""Participation changes applied to the events collection.

Every function takes the current list and returns a new one. Rejected
actions raise a ``RosterError`` and leave the input untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence

from ..domain import CAPACITY, CancelRequest, Category, EventItem, MalformedSnapshotError, Participant, User
from ..domain.models import DATE_FORMAT, TIME_FORMAT, check_civil_format

DEFAULT_CANCEL_REASON = "Personal reasons"


class RosterError(RuntimeError):
    """Base class for rejected participation changes."""


class EventNotFoundError(RosterError):
    """Raised when no event carries the requested id."""


class EventFullError(RosterError):
    """Raised when an event already has CAPACITY participants."""


class AlreadyJoinedError(RosterError):
    """Raised when the user already participates in the event."""


class NotParticipantError(RosterError):
    """Raised when the user does not participate in the event."""


class ApplicationsClosedError(RosterError):
    """Raised when applying for a slot on an event that is not open."""


class InvalidEventError(RosterError):
    """Raised when an event draft fails validation."""


@dataclass(slots=True)
class EventDraft:
    title: str
    date: str
    time: Optional[str]
    category: Category
    participant_ids: List[int] = field(default_factory=list)
    leader_id: Optional[int] = None
    repeat_weekly: bool = False


def _locate(events: Sequence[EventItem], event_id: int) -> int:
    for index, event in enumerate(events):
        if event.id == event_id:
            return index
    raise EventNotFoundError(f"Event {event_id} does not exist")


def _with_event(events: Sequence[EventItem], index: int, event: EventItem) -> List[EventItem]:
    updated = list(events)
    updated[index] = event
    return updated


def find_event(events: Sequence[EventItem], event_id: int) -> EventItem:
    return events[_locate(events, event_id)]


def _add_participant(events: Sequence[EventItem], event_id: int, user: User, *, require_open: bool) -> List[EventItem]:
    index = _locate(events, event_id)
    event = events[index]
    if event.has_participant(user.id):
        raise AlreadyJoinedError(f"{user.name} already joined event {event_id}")
    if event.is_full:
        raise EventFullError(f"Event {event_id} is full ({CAPACITY}/{CAPACITY})")
    if require_open and not event.open_for_applications:
        raise ApplicationsClosedError(f"Event {event_id} is not open for applications")
    participants = [*event.participants, Participant(id=user.id, name=user.name, leader=False)]
    return _with_event(
        events,
        index,
        replace(event, participants=participants, open_for_applications=len(participants) < CAPACITY),
    )


def join(events: Sequence[EventItem], event_id: int, user: User) -> List[EventItem]:
    return _add_participant(events, event_id, user, require_open=False)


def apply_for_slot(events: Sequence[EventItem], event_id: int, user: User) -> List[EventItem]:
    """Take a freed slot on an event an admin has reopened."""

    return _add_participant(events, event_id, user, require_open=True)


def request_cancel(
    events: Sequence[EventItem],
    event_id: int,
    user: User,
    reason: str = DEFAULT_CANCEL_REASON,
) -> List[EventItem]:
    index = _locate(events, event_id)
    event = events[index]
    if not event.has_participant(user.id):
        raise NotParticipantError(f"{user.name} is not part of event {event_id}")
    if any(request.user_id == user.id for request in event.cancel_requests):
        return list(events)
    requests = [*event.cancel_requests, CancelRequest(user_id=user.id, name=user.name, reason=reason)]
    return _with_event(events, index, replace(event, cancel_requests=requests))


def remove_participant(events: Sequence[EventItem], event_id: int, user_id: int) -> List[EventItem]:
    """Drop a participant together with any cancel request of theirs and reopen the event."""

    index = _locate(events, event_id)
    event = events[index]
    return _with_event(
        events,
        index,
        replace(
            event,
            participants=[p for p in event.participants if p.id != user_id],
            cancel_requests=[r for r in event.cancel_requests if r.user_id != user_id],
            open_for_applications=True,
        ),
    )


def approve_cancel(events: Sequence[EventItem], event_id: int, user_id: int) -> List[EventItem]:
    event = find_event(events, event_id)
    if not any(request.user_id == user_id for request in event.cancel_requests):
        raise NotParticipantError(f"User {user_id} has no cancel request on event {event_id}")
    return remove_participant(events, event_id, user_id)


def notify_all(events: Sequence[EventItem], event_id: int) -> List[EventItem]:
    index = _locate(events, event_id)
    event = events[index]
    return _with_event(events, index, replace(event, notified_to_all=True, open_for_applications=True))


def delete_event(events: Sequence[EventItem], event_id: int) -> List[EventItem]:
    index = _locate(events, event_id)
    return [event for position, event in enumerate(events) if position != index]


def _validated_participants(draft: EventDraft, users: Iterable[User]) -> List[Participant]:
    if not draft.title or not draft.date or not draft.time or not draft.category:
        raise InvalidEventError("Title, date, time and category are required")
    try:
        check_civil_format(draft.date, DATE_FORMAT, "date")
        check_civil_format(draft.time, TIME_FORMAT, "time")
    except MalformedSnapshotError as exc:
        raise InvalidEventError(str(exc)) from exc
    try:
        Category(draft.category)
    except ValueError as exc:
        raise InvalidEventError(f"Unknown category {draft.category!r}") from exc
    selected = list(dict.fromkeys(draft.participant_ids))
    if not selected or len(selected) > CAPACITY:
        raise InvalidEventError(f"Select between 1 and {CAPACITY} participants")
    if draft.leader_id is None or draft.leader_id not in selected:
        raise InvalidEventError("The leader must be one of the selected participants")
    by_id: Dict[int, User] = {user.id: user for user in users}
    missing = [user_id for user_id in selected if user_id not in by_id]
    if missing:
        raise InvalidEventError(f"Unknown participant id(s): {missing}")
    return [Participant(id=uid, name=by_id[uid].name, leader=uid == draft.leader_id) for uid in selected]


def build_event(draft: EventDraft, users: Iterable[User], event_id: int) -> EventItem:
    participants = _validated_participants(draft, users)
    return EventItem(
        id=event_id,
        title=draft.title,
        date=draft.date,
        time=draft.time,
        category=Category(draft.category),
        participants=participants,
        cancel_requests=[],
        open_for_applications=len(participants) < CAPACITY,
        notified_to_all=False,
        repeat_weekly=draft.repeat_weekly,
    )


def apply_edit(
    events: Sequence[EventItem],
    event_id: int,
    draft: EventDraft,
    users: Iterable[User],
) -> List[EventItem]:
    """Replace an event's fields and roster; cancel requests survive only for kept participants."""

    index = _locate(events, event_id)
    event = events[index]
    participants = _validated_participants(draft, users)
    kept_ids = {participant.id for participant in participants}
    return _with_event(
        events,
        index,
        replace(
            event,
            title=draft.title,
            date=draft.date,
            time=draft.time,
            category=Category(draft.category),
            repeat_weekly=draft.repeat_weekly,
            participants=participants,
            cancel_requests=[r for r in event.cancel_requests if r.user_id in kept_ids],
            open_for_applications=len(participants) < CAPACITY,
        ),
    )


__all__ = [
    "AlreadyJoinedError",
    "ApplicationsClosedError",
    "DEFAULT_CANCEL_REASON",
    "EventDraft",
    "EventFullError",
    "EventNotFoundError",
    "InvalidEventError",
    "NotParticipantError",
    "RosterError",
    "apply_edit",
    "apply_for_slot",
    "approve_cancel",
    "build_event",
    "delete_event",
    "find_event",
    "join",
    "notify_all",
    "remove_participant",
    "request_cancel",
]
