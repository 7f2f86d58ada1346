"""
Movement History Reader

Collects every outbound movement attributable to a product:
  - direct: movements.product_id == product
  - via kit: movements.kit_id == K for every kit K whose kit_items list
    the product, expanded through K's bill of materials

Returns an ascending, possibly empty, list. No history is a normal state.
"""
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockmaster.exceptions import MovementQueryError
from stockmaster.models.catalog import KitComponent
from stockmaster.models.movement import MovementEvent, MovementDirection
from stockmaster.services.kit_expansion import (
    BillOfMaterials,
    KitSale,
    OutboundMovement,
    direct_movement,
    expand_kit_movement,
)


class MovementHistoryReader:
    def __init__(self, db: Session):
        self.db = db

    def outbound_history(
        self, item_id: str, organization_id: Optional[str] = None
    ) -> List[OutboundMovement]:
        """Direct and kit-derived outbound movements for one product, oldest first."""
        try:
            movements = self._direct_outbound(item_id, organization_id)

            for kit_id, _per_kit in self.kits_containing(item_id):
                bill = self.bill_of_materials(kit_id)
                for sale in self._kit_outbound(kit_id, organization_id):
                    movements.extend(
                        m for m in expand_kit_movement(sale, bill)
                        if m.item_id == item_id
                    )
        except SQLAlchemyError as e:
            # leaves the session usable for the next tenant
            self.db.rollback()
            raise MovementQueryError(
                f"Erro ao buscar movimentos do produto {item_id}: {e}",
                organization_id=organization_id,
            ) from e

        # sorted() is stable, so same-timestamp records keep query order
        return sorted(movements, key=lambda m: m.occurred_at)

    def kits_containing(self, item_id: str) -> List[Tuple[str, float]]:
        """(kit_id, quantity_per_kit) for every kit that lists this product."""
        rows = (
            self.db.query(KitComponent.kit_id, KitComponent.quantity)
            .filter(KitComponent.product_id == item_id)
            .order_by(KitComponent.kit_id)
            .all()
        )
        return [(r.kit_id, float(r.quantity)) for r in rows]

    def bill_of_materials(self, kit_id: str) -> BillOfMaterials:
        components = (
            self.db.query(KitComponent.product_id, KitComponent.quantity)
            .filter(KitComponent.kit_id == kit_id)
            .order_by(KitComponent.created_at, KitComponent.product_id)
            .all()
        )
        return BillOfMaterials(
            kit_id=kit_id,
            components=tuple((c.product_id, float(c.quantity)) for c in components),
        )

    def _direct_outbound(self, item_id: str, organization_id: Optional[str]) -> List[OutboundMovement]:
        query = self.db.query(MovementEvent.quantity, MovementEvent.created_at).filter(
            MovementEvent.product_id == item_id,
            MovementEvent.direction == MovementDirection.OUT,
        )
        if organization_id:
            query = query.filter(MovementEvent.organization_id == organization_id)

        rows = query.order_by(MovementEvent.created_at.asc()).all()
        return [direct_movement(item_id, float(r.quantity), r.created_at) for r in rows]

    def _kit_outbound(self, kit_id: str, organization_id: Optional[str]) -> List[KitSale]:
        query = self.db.query(MovementEvent.quantity, MovementEvent.created_at).filter(
            MovementEvent.kit_id == kit_id,
            MovementEvent.direction == MovementDirection.OUT,
        )
        if organization_id:
            query = query.filter(MovementEvent.organization_id == organization_id)

        rows = query.order_by(MovementEvent.created_at.asc()).all()
        return [KitSale(kit_id=kit_id, quantity=float(r.quantity), occurred_at=r.created_at) for r in rows]
