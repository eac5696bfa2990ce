import uuid

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from core.config import settings
from ..database import Base, utcnow


class Item(Base):
    __tablename__ = "items"
    __table_args__ = (UniqueConstraint("event_id", "sku", name="uq_items_event_sku"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False, index=True)
    sku = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # 'FURNITURE' | 'AV_EQUIPMENT' | 'DECOR' | 'SUPPLIES' | 'FOOD_BEVERAGE' | 'OTHER'
    category = Column(String(32), nullable=False, index=True)
    # 'AVAILABLE' | 'RESERVED' | 'OUT_OF_STOCK' | 'MAINTENANCE' | 'DAMAGED' | 'RETIRED'
    status = Column(String(32), nullable=False, default="AVAILABLE", index=True)

    quantity = Column(Integer, nullable=False, default=0)
    unit_of_measure = Column(String(32), nullable=False, default="EACH")
    unit_price = Column(Numeric(12, 2), nullable=True)

    location = Column(String(255), nullable=False)
    bin = Column(String(255), nullable=True)

    is_perishable = Column(Boolean, nullable=False, default=False)
    storage_type = Column(String(16), nullable=True)  # 'DRY' | 'CHILL' | 'FREEZE'
    par_level = Column(Integer, nullable=True)
    reorder_point = Column(Integer, nullable=True)

    supplier_id = Column(UUID(as_uuid=True), ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)

    is_alcohol = Column(Boolean, nullable=False, default=False)
    abv = Column(Numeric(5, 2), nullable=True)
    allergens = Column(JSON, nullable=False, default=list)
    bottles_per_crate = Column(Integer, nullable=True)
    bottle_volume_ml = Column(Integer, nullable=True)

    last_audit = Column(DateTime, nullable=True)
    vector_desc = Column(Vector(settings.embedding_dimensions), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="items")
    supplier = relationship("Supplier", back_populates="items")
    batches = relationship("Batch", back_populates="item", cascade="all, delete-orphan", passive_deletes=True)
    audit_logs = relationship("AuditLog", back_populates="item", cascade="all, delete-orphan", passive_deletes=True)
    waste_logs = relationship("WasteLog", back_populates="item", cascade="all, delete-orphan", passive_deletes=True)
