import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class Batch(Base):
    __tablename__ = "batches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    lot_number = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    initial_quantity = Column(Integer, nullable=False)

    expiration_date = Column(DateTime, nullable=True, index=True)
    received_at = Column(DateTime, nullable=False, default=utcnow)
    manufactured_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    # closed once quantity reaches zero
    is_open = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    item = relationship("Item", back_populates="batches")
