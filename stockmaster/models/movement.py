"""
Stock movement history.

Append-only: the engine reads these rows and never updates or deletes them.
A movement references exactly one of product_id (direct) or kit_id (sold as
part of a kit).
"""
import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Float, DateTime, Enum, ForeignKey, CheckConstraint, Index

from stockmaster.models.base import Base


class MovementDirection(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"


class MovementEvent(Base):
    """A single inbound, outbound or transfer stock movement"""
    __tablename__ = "movements"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), index=True, nullable=False)

    direction = Column(
        Enum(MovementDirection, name="movement_direction", native_enum=False),
        nullable=False,
    )
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=True)
    kit_id = Column(String(36), ForeignKey("kits.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Float, nullable=False)

    reference = Column(String, nullable=True)
    note = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(product_id IS NULL) <> (kit_id IS NULL)",
            name="ck_movements_single_source",
        ),
        Index("ix_movements_product_direction", "product_id", "direction", "created_at"),
        Index("ix_movements_kit_direction", "kit_id", "direction", "created_at"),
    )
