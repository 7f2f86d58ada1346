"""
Profit Map: Profitability Quadrant Classification

Aggregates realized sales from the financial ledger per item and labels each
item relative to the rest of the cohort:

  Estrela       top quartile by profit AND by quantity
  Problemático  loss-making, or weak profit (< half the average) with margin < 10%
  Sombra        revenue above the average *profit* with margin < 15%
  Estável       everything else

Rules are evaluated in that order; the first match wins. Nothing here is
persisted: the whole cohort is re-aggregated and re-ranked on every query.
"""
import enum
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockmaster.exceptions import LedgerQueryError
from stockmaster.models.catalog import CatalogItem, Kit
from stockmaster.models.ledger import ItemKind, LedgerEntryType, ProfitLedgerEntry
from stockmaster.utils.logger import log

TOP_QUARTILE = 0.25
WEAK_PROFIT_RATIO = 0.5
PROBLEM_MARGIN_PCT = 10
SHADOW_MARGIN_PCT = 15


class Quadrant(str, enum.Enum):
    ESTRELA = "Estrela"
    ESTAVEL = "Estável"
    SOMBRA = "Sombra"
    PROBLEMATICO = "Problemático"


QUADRANT_COLORS = {
    Quadrant.ESTRELA: "#22c55e",
    Quadrant.ESTAVEL: "#0ea5e9",
    Quadrant.SOMBRA: "#eab308",
    Quadrant.PROBLEMATICO: "#ef4444",
}

QUADRANT_ADVICE = {
    Quadrant.ESTRELA: (
        "Este é um produto estrela! Continue investindo em marketing e mantenha o estoque sempre "
        "disponível. Considere aumentar levemente o preço para maximizar a margem."
    ),
    Quadrant.ESTAVEL: (
        "Produto com desempenho consistente. Mantenha o equilíbrio entre preço e volume. Avalie "
        "oportunidades de cross-sell com produtos estrela."
    ),
    Quadrant.SOMBRA: (
        "Alto faturamento mas margem baixa. Revise os custos envolvidos (fornecedor, frete, impostos) e "
        "considere reajuste de preço ou substituição por alternativa mais rentável."
    ),
    Quadrant.PROBLEMATICO: (
        "Produto com baixo desempenho. Considere descontinuar ou criar promoção para liquidar estoque. "
        "Reavalie custos e precificação urgentemente."
    ),
}

ITEM_KIND_FILTERS = {
    "produtos": (ItemKind.PRODUCT,),
    "kits": (ItemKind.KIT,),
    "ambos": (ItemKind.PRODUCT, ItemKind.KIT),
}

PERIOD_PRESETS = {"7": 7, "15": 15, "30": 30}
DEFAULT_PERIOD_DAYS = 30


@dataclass(frozen=True)
class LedgerSale:
    item_id: str
    item_kind: ItemKind
    revenue: float
    net_profit: float
    quantity: float
    entry_date: date


@dataclass
class ItemPerformance:
    id: str
    name: str
    type: str
    faturamento: float = 0.0
    lucro: float = 0.0
    quantidade: float = 0.0
    margem: float = 0.0
    ticket_medio: float = 0.0
    classificacao: Quadrant = Quadrant.ESTAVEL
    color: str = QUADRANT_COLORS[Quadrant.ESTAVEL]
    daily_data: Dict[date, Dict[str, float]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "faturamento": round(self.faturamento, 2),
            "lucro": round(self.lucro, 2),
            "margem": round(self.margem, 2),
            "quantidade": self.quantidade,
            "ticketMedio": round(self.ticket_medio, 2),
            "classificacao": self.classificacao.value,
            "color": self.color,
            "recomendacao": QUADRANT_ADVICE[self.classificacao],
            "dailyData": [
                {"date": day.isoformat(), "lucro": round(v["lucro"], 2), "vendas": v["vendas"]}
                for day, v in sorted(self.daily_data.items())
            ],
        }


def aggregate_sales(
    sales: Iterable[LedgerSale],
    names: Optional[Dict[str, str]] = None,
) -> List[ItemPerformance]:
    """
    Sum revenue, profit and quantity per item, in first-seen order, then
    derive margin (%) and average ticket. Sales without an item are skipped.
    """
    names = names or {}
    items: Dict[str, ItemPerformance] = {}

    for sale in sales:
        if not sale.item_id:
            continue

        item = items.get(sale.item_id)
        if item is None:
            is_kit = sale.item_kind == ItemKind.KIT
            default_name = "Kit desconhecido" if is_kit else "Produto desconhecido"
            item = ItemPerformance(
                id=sale.item_id,
                name=names.get(sale.item_id, default_name),
                type=sale.item_kind.value,
            )
            items[sale.item_id] = item

        item.faturamento += sale.revenue
        item.lucro += sale.net_profit
        item.quantidade += sale.quantity

        day = item.daily_data.setdefault(sale.entry_date, {"lucro": 0.0, "vendas": 0.0})
        day["lucro"] += sale.net_profit
        day["vendas"] += sale.quantity

    for item in items.values():
        item.margem = (item.lucro / item.faturamento) * 100 if item.faturamento > 0 else 0.0
        item.ticket_medio = item.faturamento / item.quantidade if item.quantidade > 0 else 0.0

    return list(items.values())


def _ranks(items: List[ItemPerformance], key) -> List[int]:
    """Descending rank of each item; ties keep input order (sorted() is stable)."""
    order = sorted(range(len(items)), key=lambda i: -key(items[i]))
    ranks = [0] * len(items)
    for rank, idx in enumerate(order):
        ranks[idx] = rank
    return ranks


def cohort_baselines(items: List[ItemPerformance]) -> Dict[str, float]:
    """Average profit and quantity across the cohort (0 for an empty cohort)."""
    if not items:
        return {"avgLucro": 0.0, "avgQuantidade": 0.0}
    return {
        "avgLucro": sum(i.lucro for i in items) / len(items),
        "avgQuantidade": sum(i.quantidade for i in items) / len(items),
    }


def classify_items(items: List[ItemPerformance]) -> List[ItemPerformance]:
    """Assign exactly one quadrant and color to every item of the cohort, in place."""
    if not items:
        return items

    count = len(items)
    avg_lucro = cohort_baselines(items)["avgLucro"]
    cutoff = count * TOP_QUARTILE

    lucro_ranks = _ranks(items, lambda i: i.lucro)
    quantidade_ranks = _ranks(items, lambda i: i.quantidade)

    for item, lucro_rank, quantidade_rank in zip(items, lucro_ranks, quantidade_ranks):
        top_lucro = lucro_rank < cutoff
        top_quantidade = quantidade_rank < cutoff

        if top_lucro and top_quantidade:
            quadrant = Quadrant.ESTRELA
        elif item.lucro < 0 or (item.lucro < avg_lucro * WEAK_PROFIT_RATIO and item.margem < PROBLEM_MARGIN_PCT):
            quadrant = Quadrant.PROBLEMATICO
        elif item.faturamento > avg_lucro and item.margem < SHADOW_MARGIN_PCT:
            # Revenue against the profit average, kept as the dashboard has always done it
            quadrant = Quadrant.SOMBRA
        else:
            quadrant = Quadrant.ESTAVEL

        item.classificacao = quadrant
        item.color = QUADRANT_COLORS[quadrant]

    return items


def profit_map_metrics(items: List[ItemPerformance]) -> Dict[str, Any]:
    """Headline cards: total profit, best item, worst margin, overall ticket."""
    if not items:
        return {"lucroTotal": 0, "maisLucrativo": None, "piorMargem": None, "ticketMedio": 0}

    by_profit = sorted(items, key=lambda i: i.lucro, reverse=True)
    worst_margin = sorted(items, key=lambda i: i.margem)[0]
    faturamento_total = sum(i.faturamento for i in items)
    quantidade_total = sum(i.quantidade for i in items)

    return {
        "lucroTotal": round(sum(i.lucro for i in items), 2),
        "maisLucrativo": {"id": by_profit[0].id, "name": by_profit[0].name, "lucro": round(by_profit[0].lucro, 2)},
        "piorMargem": {"id": worst_margin.id, "name": worst_margin.name, "margem": round(worst_margin.margem, 2)},
        "ticketMedio": round(faturamento_total / quantidade_total, 2) if quantidade_total > 0 else 0,
    }


def resolve_period(
    period: str = "30",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """Explicit start+end wins; otherwise 7/15/30 days back or 'mes' (month to date)."""
    if start_date and end_date:
        return start_date, end_date

    end = today or date.today()
    if period == "mes":
        return end.replace(day=1), end
    return end - timedelta(days=PERIOD_PRESETS.get(period, DEFAULT_PERIOD_DAYS)), end


class ProfitQuadrantService:
    """Ledger-backed profit map. Read-only, safe for concurrent readers."""

    def __init__(self, db: Session):
        self.db = db

    def get_profit_map(
        self,
        organization_id: str,
        period: str = "30",
        tipo: str = "ambos",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        start, end = resolve_period(period, start_date, end_date, today)
        kinds = ITEM_KIND_FILTERS.get(tipo, ITEM_KIND_FILTERS["ambos"])

        sales = self._ledger_sales(organization_id, start, end, kinds)
        log.info(f"Mapa de lucro - {len(sales)} vendas entre {start} e {end} ({tipo})")

        items = classify_items(aggregate_sales(sales, self._item_names(organization_id)))
        baselines = cohort_baselines(items)
        items = sorted(items, key=lambda i: i.lucro, reverse=True)

        return {
            "period": {"start": start.isoformat(), "end": end.isoformat()},
            "tipo": tipo,
            "metrics": profit_map_metrics(items),
            "baselines": {k: round(v, 2) for k, v in baselines.items()},
            "items": [i.to_dict() for i in items],
        }

    def _ledger_sales(self, organization_id: str, start: date, end: date, kinds) -> List[LedgerSale]:
        try:
            rows = (
                self.db.query(ProfitLedgerEntry)
                .filter(
                    ProfitLedgerEntry.organization_id == organization_id,
                    ProfitLedgerEntry.entry_type == LedgerEntryType.SALE,
                    ProfitLedgerEntry.item_kind.in_(kinds),
                    ProfitLedgerEntry.item_id.isnot(None),
                    ProfitLedgerEntry.entry_date >= start,
                    ProfitLedgerEntry.entry_date <= end,
                )
                .order_by(ProfitLedgerEntry.entry_date, ProfitLedgerEntry.created_at, ProfitLedgerEntry.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise LedgerQueryError(
                f"Erro ao buscar dados financeiros: {e}", organization_id=organization_id
            ) from e

        return [
            LedgerSale(
                item_id=r.item_id,
                item_kind=r.item_kind,
                revenue=float(r.revenue or 0),
                net_profit=float(r.net_profit or 0),
                quantity=float(r.quantity or 0),
                entry_date=r.entry_date,
            )
            for r in rows
        ]

    def _item_names(self, organization_id: str) -> Dict[str, str]:
        try:
            products = self.db.query(CatalogItem.id, CatalogItem.name).filter(
                CatalogItem.organization_id == organization_id
            ).all()
            kits = self.db.query(Kit.id, Kit.name).filter(
                Kit.organization_id == organization_id
            ).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise LedgerQueryError(
                f"Erro ao buscar nomes dos itens: {e}", organization_id=organization_id
            ) from e

        names = {p.id: p.name for p in products}
        names.update({k.id: k.name for k in kits})
        return names
