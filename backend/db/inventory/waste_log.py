import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class WasteLog(Base):
    __tablename__ = "waste_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    item_id = Column(UUID(as_uuid=True), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(UUID(as_uuid=True), ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True)
    event_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    # 'SPOILAGE' | 'OVERPRODUCTION' | 'DAMAGE' | 'CONTAMINATION' | 'OTHER'
    reason = Column(String(32), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    cost_impact = Column(Numeric(12, 2), nullable=True)

    created_by = Column(String(255), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    item = relationship("Item", back_populates="waste_logs")
    batch = relationship("Batch")
