"""
Kit composition expansion.

Turns an outbound movement recorded against a kit into the equivalent
outbound movements of its component products, using the kit's
bill-of-materials multipliers. Every outbound record is tagged with where
it came from, so nothing downstream has to guess kit-ness from free text.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Tuple, Union


@dataclass(frozen=True)
class Direct:
    """Movement recorded against the product itself."""
    item_id: str


@dataclass(frozen=True)
class ViaKit:
    """Movement derived from a kit sale that consumes this product."""
    kit_id: str
    component_id: str
    multiplier: float


MovementSource = Union[Direct, ViaKit]


@dataclass(frozen=True)
class OutboundMovement:
    """One outbound quantity at a point in time, tagged with its source."""
    source: MovementSource
    quantity: float
    occurred_at: datetime

    @property
    def item_id(self) -> str:
        if isinstance(self.source, ViaKit):
            return self.source.component_id
        return self.source.item_id


@dataclass(frozen=True)
class KitSale:
    """Outbound movement recorded against a kit."""
    kit_id: str
    quantity: float
    occurred_at: datetime


@dataclass(frozen=True)
class BillOfMaterials:
    """A kit's (component_id, quantity_per_kit) lines."""
    kit_id: str
    components: Tuple[Tuple[str, float], ...] = ()


def expand_kit_movement(sale: KitSale, bill: BillOfMaterials) -> List[OutboundMovement]:
    """
    Emit one component-equivalent outbound record per bill line.

    quantity = kit quantity x component quantity per kit. All records share
    the kit movement's timestamp and are not merged. A kit with no
    components yields an empty list.
    """
    return [
        OutboundMovement(
            source=ViaKit(kit_id=sale.kit_id, component_id=component_id, multiplier=per_kit),
            quantity=sale.quantity * per_kit,
            occurred_at=sale.occurred_at,
        )
        for component_id, per_kit in bill.components
    ]


def direct_movement(item_id: str, quantity: float, occurred_at: datetime) -> OutboundMovement:
    return OutboundMovement(source=Direct(item_id=item_id), quantity=quantity, occurred_at=occurred_at)
