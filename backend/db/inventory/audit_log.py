import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    actual_quantity = Column(Integer, nullable=False)
    expected_quantity = Column(Integer, nullable=False)
    discrepancy = Column(Integer, nullable=False)  # actual - expected
    notes = Column(Text, nullable=True)
    context_id = Column(String(255), nullable=True, index=True)  # MCP session / client correlation id

    created_by = Column(String(255), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    item = relationship("Item", back_populates="audit_logs")
