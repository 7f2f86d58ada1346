"""
Stock depletion forecasts.

Current-state snapshot: each recompute deletes the tenant's rows and inserts
a fresh set, so there is at most one row per product per tenant.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, String, Float, Date, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from stockmaster.models.base import Base


class ForecastRecord(Base):
    """Depletion projection and recommendation for one product"""
    __tablename__ = "stock_forecasts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False)

    on_hand_quantity = Column(Float, nullable=False, default=0.0)
    daily_velocity = Column(Float, nullable=False, default=0.0)
    days_remaining = Column(Float, nullable=True, index=True)
    projected_stockout_date = Column(Date, nullable=True)
    financial_exposure = Column(Float, nullable=False, default=0.0)

    recommendation = Column(Text, nullable=False)

    generated_at = Column(DateTime, default=datetime.utcnow, index=True, nullable=False)

    product = relationship("CatalogItem")

    __table_args__ = (
        UniqueConstraint("organization_id", "product_id", name="uq_stock_forecasts_org_product"),
    )
