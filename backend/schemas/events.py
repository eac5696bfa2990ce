from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from schemas.common import EventRole, InvitationStatus, UtcDatetime


class EventBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    location: Optional[str] = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class EventCreate(EventBase):
    @model_validator(mode="after")
    def _dates_in_order(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class EventUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    location: Optional[str] = Field(default=None, max_length=500)


class EventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EventSummary(EventRead):
    role: EventRole
    member_count: int


class EventDetail(EventSummary):
    item_count: int


class EventMemberCreate(BaseModel):
    user_id: str = Field(min_length=1, max_length=255)
    role: EventRole = "VIEWER"


class EventMemberRoleUpdate(BaseModel):
    role: EventRole


class EventMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    user_id: str
    role: EventRole
    created_at: datetime


class InvitationCreate(BaseModel):
    invitee_email: EmailStr
    role: EventRole = "VIEWER"
    message: Optional[str] = Field(default=None, max_length=2000)


class InvitationEventSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    location: Optional[str] = None


class InvitationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    inviter_id: str
    invitee_email: str
    role: EventRole
    status: InvitationStatus
    message: Optional[str] = None
    expires_at: datetime
    responded_at: Optional[datetime] = None
    created_at: datetime


class PendingInvitationRead(InvitationRead):
    event: InvitationEventSummary


class InvitationAccepted(BaseModel):
    message: str
    event_member: EventMemberRead
