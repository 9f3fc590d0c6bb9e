from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .enums import Category

CAPACITY = 4

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


class MalformedSnapshotError(ValueError):
    """Raised when a stored payload cannot be decoded into typed records."""


def _field(record: Dict[str, Any], key: str) -> Any:
    if not isinstance(record, dict):
        raise MalformedSnapshotError(f"Expected an object, got {type(record).__name__}")
    if key not in record:
        raise MalformedSnapshotError(f"Missing field {key!r}")
    return record[key]


def _int(record: Dict[str, Any], key: str) -> int:
    value = _field(record, key)
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedSnapshotError(f"Field {key!r} must be an integer, got {value!r}")
    return value


def _str(record: Dict[str, Any], key: str) -> str:
    value = _field(record, key)
    if not isinstance(value, str):
        raise MalformedSnapshotError(f"Field {key!r} must be a string, got {value!r}")
    return value


def _bool(record: Dict[str, Any], key: str, default: Optional[bool] = None) -> bool:
    if default is not None and key not in record:
        return default
    value = _field(record, key)
    if not isinstance(value, bool):
        raise MalformedSnapshotError(f"Field {key!r} must be a boolean, got {value!r}")
    return value


def _list(record: Dict[str, Any], key: str) -> list:
    value = record.get(key, [])
    if not isinstance(value, list):
        raise MalformedSnapshotError(f"Field {key!r} must be a list, got {value!r}")
    return value


def check_civil_format(value: str, fmt: str, key: str) -> str:
    try:
        parsed = datetime.strptime(value, fmt)
    except ValueError as exc:
        raise MalformedSnapshotError(f"Field {key!r} has invalid value {value!r}") from exc
    # strptime accepts unpadded numbers; the stored form must stay fixed-width.
    if parsed.strftime(fmt) != value:
        raise MalformedSnapshotError(f"Field {key!r} is not zero-padded: {value!r}")
    return value


@dataclass(slots=True)
class User:
    id: int
    name: str
    password: str
    is_admin: bool = False

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        return cls(
            id=_int(record, "id"),
            name=_str(record, "name"),
            password=_str(record, "password"),
            is_admin=_bool(record, "isAdmin", default=False),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "password": self.password,
            "isAdmin": self.is_admin,
        }


@dataclass(slots=True)
class Participant:
    id: int
    name: str
    leader: bool = False

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Participant":
        return cls(
            id=_int(record, "id"),
            name=_str(record, "name"),
            leader=_bool(record, "leader", default=False),
        )

    def to_record(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "leader": self.leader}


@dataclass(slots=True)
class CancelRequest:
    user_id: int
    name: str
    reason: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CancelRequest":
        reason = record.get("reason") if isinstance(record, dict) else None
        return cls(
            user_id=_int(record, "userId"),
            name=_str(record, "name"),
            reason=reason if isinstance(reason, str) else "",
        )

    def to_record(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "name": self.name, "reason": self.reason}


@dataclass(slots=True)
class EventItem:
    id: int
    title: str
    date: str
    category: Category
    time: Optional[str] = None
    participants: List[Participant] = field(default_factory=list)
    cancel_requests: List[CancelRequest] = field(default_factory=list)
    open_for_applications: bool = True
    notified_to_all: bool = False
    repeat_weekly: bool = False

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= CAPACITY

    def has_participant(self, user_id: int) -> bool:
        return any(participant.id == user_id for participant in self.participants)

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.date, self.time or "")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "EventItem":
        raw_time = record.get("time") if isinstance(record, dict) else None
        if raw_time in (None, ""):
            time = None
        elif isinstance(raw_time, str):
            time = check_civil_format(raw_time, TIME_FORMAT, "time")
        else:
            raise MalformedSnapshotError(f"Field 'time' must be a string, got {raw_time!r}")

        raw_category = _str(record, "category")
        try:
            category = Category(raw_category)
        except ValueError as exc:
            raise MalformedSnapshotError(f"Unknown category {raw_category!r}") from exc

        participants = [Participant.from_record(item) for item in _list(record, "participants")]
        if len(participants) > CAPACITY:
            raise MalformedSnapshotError(
                f"Event {record.get('id')!r} has {len(participants)} participants (capacity {CAPACITY})"
            )

        return cls(
            id=_int(record, "id"),
            title=_str(record, "title"),
            date=check_civil_format(_str(record, "date"), DATE_FORMAT, "date"),
            category=category,
            time=time,
            participants=participants,
            cancel_requests=[CancelRequest.from_record(item) for item in _list(record, "cancelRequests")],
            open_for_applications=_bool(record, "openForApplications", default=len(participants) < CAPACITY),
            notified_to_all=_bool(record, "notifiedToAll", default=False),
            repeat_weekly=_bool(record, "repeatWeekly", default=False),
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "time": self.time,
            "category": self.category.value,
            "participants": [participant.to_record() for participant in self.participants],
            "cancelRequests": [request.to_record() for request in self.cancel_requests],
            "openForApplications": self.open_for_applications,
            "notifiedToAll": self.notified_to_all,
            "repeatWeekly": self.repeat_weekly,
        }


def decode_users(raw: Any) -> List[User]:
    if not isinstance(raw, list):
        raise MalformedSnapshotError(f"Users payload must be a list, got {type(raw).__name__}")
    return [User.from_record(item) for item in raw]


def decode_events(raw: Any) -> List[EventItem]:
    if not isinstance(raw, list):
        raise MalformedSnapshotError(f"Events payload must be a list, got {type(raw).__name__}")
    events = [EventItem.from_record(item) for item in raw]
    seen: set[int] = set()
    for event in events:
        if event.id in seen:
            raise MalformedSnapshotError(f"Duplicate event id {event.id}")
        seen.add(event.id)
    return events


def encode_users(users: Iterable[User]) -> List[Dict[str, Any]]:
    return [user.to_record() for user in users]


def encode_events(events: Iterable[EventItem]) -> List[Dict[str, Any]]:
    return [event.to_record() for event in events]
