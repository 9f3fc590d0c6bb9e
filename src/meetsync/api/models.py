from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.roster import DEFAULT_CANCEL_REASON, EventDraft
from ..domain import CancelRequest, Category, EventItem, Participant, User


class UserPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    is_admin: bool = Field(default=False, alias="isAdmin")

    @classmethod
    def from_domain(cls, user: User) -> "UserPayload":
        return cls(id=user.id, name=user.name, is_admin=user.is_admin)


class ParticipantPayload(BaseModel):
    id: int
    name: str
    leader: bool = False

    @classmethod
    def from_domain(cls, participant: Participant) -> "ParticipantPayload":
        return cls(id=participant.id, name=participant.name, leader=participant.leader)


class CancelRequestPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    name: str
    reason: str = ""

    @classmethod
    def from_domain(cls, request: CancelRequest) -> "CancelRequestPayload":
        return cls(user_id=request.user_id, name=request.name, reason=request.reason)


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    date: str
    time: Optional[str] = None
    category: Category
    participants: List[ParticipantPayload] = Field(default_factory=list)
    cancel_requests: List[CancelRequestPayload] = Field(default_factory=list, alias="cancelRequests")
    open_for_applications: bool = Field(alias="openForApplications")
    notified_to_all: bool = Field(default=False, alias="notifiedToAll")
    repeat_weekly: bool = Field(default=False, alias="repeatWeekly")

    @classmethod
    def from_domain(cls, event: EventItem) -> "EventPayload":
        return cls(
            id=event.id,
            title=event.title,
            date=event.date,
            time=event.time,
            category=event.category,
            participants=[ParticipantPayload.from_domain(p) for p in event.participants],
            cancel_requests=[CancelRequestPayload.from_domain(r) for r in event.cancel_requests],
            open_for_applications=event.open_for_applications,
            notified_to_all=event.notified_to_all,
            repeat_weekly=event.repeat_weekly,
        )


class CredentialsRequest(BaseModel):
    name: str
    password: str


class AdminUserRequest(CredentialsRequest):
    model_config = ConfigDict(populate_by_name=True)

    is_admin: bool = Field(default=False, alias="isAdmin")


class CancelRequestBody(BaseModel):
    reason: str = DEFAULT_CANCEL_REASON


class EventDraftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    date: str
    time: Optional[str] = None
    category: Category
    participant_ids: List[int] = Field(default_factory=list, alias="participantIds")
    leader_id: Optional[int] = Field(default=None, alias="leaderId")
    repeat_weekly: bool = Field(default=False, alias="repeatWeekly")

    def to_draft(self) -> EventDraft:
        return EventDraft(
            title=self.title.strip(),
            date=self.date,
            time=self.time,
            category=self.category,
            participant_ids=list(self.participant_ids),
            leader_id=self.leader_id,
            repeat_weekly=self.repeat_weekly,
        )
