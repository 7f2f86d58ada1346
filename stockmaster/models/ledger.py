"""
Financial ledger entries (read-only to the engine).

One row per realized sale or purchase, with revenue, cost and net profit
already computed by the movement-management side.
"""
import enum
import uuid
from datetime import datetime, date

from sqlalchemy import Column, String, Float, Integer, Date, DateTime, Enum, Index

from stockmaster.models.base import Base


class LedgerEntryType(str, enum.Enum):
    SALE = "venda"
    PURCHASE = "compra"


class ItemKind(str, enum.Enum):
    PRODUCT = "produto"
    KIT = "kit"


class ProfitLedgerEntry(Base):
    """Realized revenue / cost / profit for one inbound or outbound event"""
    __tablename__ = "financial_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), index=True, nullable=False)

    entry_type = Column(
        Enum(LedgerEntryType, name="ledger_entry_type", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    item_kind = Column(
        Enum(ItemKind, name="ledger_item_kind", native_enum=False,
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ItemKind.PRODUCT,
    )
    item_id = Column(String(36), nullable=True, index=True)
    description = Column(String, nullable=True)

    revenue = Column(Float, nullable=False, default=0.0)
    cost = Column(Float, nullable=False, default=0.0)
    net_profit = Column(Float, nullable=False, default=0.0)
    quantity = Column(Integer, nullable=False, default=0)

    entry_date = Column(Date, default=date.today, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_financial_entries_org_type_date", "organization_id", "entry_type", "entry_date"),
    )
