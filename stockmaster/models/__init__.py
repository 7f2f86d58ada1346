"""Database models for the StockMaster forecast engine"""

from stockmaster.models.catalog import (
    CatalogItem,
    Kit,
    KitComponent
)

from stockmaster.models.movement import MovementEvent, MovementDirection

from stockmaster.models.ledger import ProfitLedgerEntry, LedgerEntryType, ItemKind

from stockmaster.models.forecast import ForecastRecord

__all__ = [
    "CatalogItem",
    "Kit",
    "KitComponent",
    "MovementEvent",
    "MovementDirection",
    "ProfitLedgerEntry",
    "LedgerEntryType",
    "ItemKind",
    "ForecastRecord",
]
