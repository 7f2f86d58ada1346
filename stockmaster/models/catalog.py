"""
Catalog models: sellable products and composite kits.

A kit's stock effect is derived from its components; kits carry no
on-hand quantity of their own.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Float, DateTime, Boolean, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from stockmaster.models.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class CatalogItem(Base):
    """A simple sellable product with its stock position and pricing"""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), index=True, nullable=False)

    sku = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    unit = Column(String, default="UN")

    quantity = Column(Float, nullable=False, default=0.0)
    min_quantity = Column(Float, nullable=False, default=0.0)
    cost = Column(Float, nullable=False, default=0.0)
    sale_price = Column(Float, nullable=False, default=0.0)

    active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )


class Kit(Base):
    """A composite sellable item built from catalog products"""
    __tablename__ = "kits"

    id = Column(String(36), primary_key=True, default=_uuid)
    organization_id = Column(String(36), index=True, nullable=False)

    sku = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    sale_price = Column(Float, nullable=False, default=0.0)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    components = relationship("KitComponent", back_populates="kit", cascade="all, delete-orphan")


class KitComponent(Base):
    """Bill-of-materials line: how many units of a product one kit consumes"""
    __tablename__ = "kit_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    kit_id = Column(String(36), ForeignKey("kits.id", ondelete="CASCADE"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)
    quantity = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    kit = relationship("Kit", back_populates="components")
    product = relationship("CatalogItem")

    __table_args__ = (
        UniqueConstraint("kit_id", "product_id", name="uq_kit_items_kit_product"),
        CheckConstraint("quantity > 0", name="ck_kit_items_quantity_positive"),
    )

