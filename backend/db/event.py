import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .database import Base, utcnow


class Event(Base):
    __tablename__ = "events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=True, index=True)
    end_date = Column(DateTime, nullable=True)
    location = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    members = relationship("EventMember", back_populates="event", cascade="all, delete-orphan", passive_deletes=True)
    invitations = relationship("EventInvitation", back_populates="event", cascade="all, delete-orphan", passive_deletes=True)
    items = relationship("Item", back_populates="event", cascade="all, delete-orphan", passive_deletes=True)


class EventMember(Base):
    __tablename__ = "event_members"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_members_event_user"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)  # identity-provider subject
    role = Column(String(16), nullable=False, default="VIEWER")  # 'OWNER' | 'ADMIN' | 'EDITOR' | 'VIEWER'
    created_at = Column(DateTime, nullable=False, default=utcnow)

    event = relationship("Event", back_populates="members")


class EventInvitation(Base):
    __tablename__ = "event_invitations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    inviter_id = Column(String(255), nullable=False)
    invitee_email = Column(String(255), nullable=False, index=True)  # stored lowercased
    role = Column(String(16), nullable=False, default="VIEWER")
    status = Column(String(16), nullable=False, default="PENDING", index=True)  # 'PENDING' | 'ACCEPTED' | 'DECLINED' | 'EXPIRED'
    message = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    responded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    event = relationship("Event", back_populates="invitations")
