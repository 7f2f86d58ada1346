"""
Stock Forecast Service

Recomputes depletion forecasts for every active product of a tenant:

  movements (direct + via kit) -> velocity -> days remaining -> exposure
  -> recommendation -> replace-all of the tenant's forecast rows

Items are processed strictly one after another. The only write is the final
delete-then-insert, done in a single transaction, so an aborted run leaves
the previous forecasts untouched.
"""
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stockmaster.config import get_settings
from stockmaster.exceptions import ForecastPersistenceError, MovementQueryError
from stockmaster.models.catalog import CatalogItem
from stockmaster.models.forecast import ForecastRecord
from stockmaster.services.depletion import (
    compute_sales_velocity,
    estimate_financial_exposure,
    project_depletion,
    urgency_level,
)
from stockmaster.services.kit_expansion import OutboundMovement
from stockmaster.services.movement_history import MovementHistoryReader
from stockmaster.services.recommendation import ForecastFacts, RecommendationComposer
from stockmaster.utils.cache import clear_for_organization
from stockmaster.utils.logger import log

settings = get_settings()


@dataclass(frozen=True)
class ItemForecast:
    product_id: str
    item_name: str
    on_hand_quantity: float
    daily_velocity: float
    days_remaining: Optional[float]
    projected_stockout_date: Optional[date]
    financial_exposure: float
    recommendation: str


@dataclass
class ForecastRunResult:
    organization_id: str
    total: int
    previsoes: List[Dict[str, Any]] = field(default_factory=list)
    skipped: int = 0
    deadline_exceeded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "organization_id": self.organization_id,
            "total": self.total,
            "skipped": self.skipped,
            "deadline_exceeded": self.deadline_exceeded,
            "previsoes": self.previsoes,
        }


def forecast_item(
    product_id: str,
    item_name: str,
    on_hand: float,
    unit_sale_price: float,
    movements: Sequence[OutboundMovement],
    composer: RecommendationComposer,
    today: date,
    exposure_threshold_days: float = 10.0,
    allow_external: bool = True,
) -> ItemForecast:
    """Run the per-item pipeline. Pure apart from the composer's collaborator call."""
    velocity = compute_sales_velocity(movements)
    projection = project_depletion(on_hand, velocity.daily_velocity, today)
    exposure = estimate_financial_exposure(
        velocity.daily_velocity,
        unit_sale_price,
        projection.days_remaining,
        threshold_days=exposure_threshold_days,
    )

    facts = ForecastFacts(
        item_name=item_name,
        on_hand_quantity=float(on_hand),
        daily_velocity=velocity.daily_velocity,
        days_remaining=projection.days_remaining,
        projected_stockout_date=projection.projected_stockout_date,
        financial_exposure=exposure,
    )

    return ItemForecast(
        product_id=product_id,
        item_name=item_name,
        on_hand_quantity=float(on_hand),
        daily_velocity=velocity.daily_velocity,
        days_remaining=projection.days_remaining,
        projected_stockout_date=projection.projected_stockout_date,
        financial_exposure=exposure,
        recommendation=composer.compose(facts, allow_external=allow_external),
    )


def serialize_forecast(record: ForecastRecord, name: Optional[str] = None, sku: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": record.id,
        "produto_id": record.product_id,
        "nome": name,
        "sku": sku,
        "estoque_atual": record.on_hand_quantity,
        "media_vendas_diaria": record.daily_velocity,
        "dias_restantes": record.days_remaining,
        "data_ruptura": record.projected_stockout_date.isoformat() if record.projected_stockout_date else None,
        "perda_financeira": record.financial_exposure,
        "urgencia": urgency_level(record.days_remaining),
        "recomendacao": record.recommendation,
        "data_previsao": record.generated_at.isoformat() if record.generated_at else None,
        "organization_id": record.organization_id,
    }


class StockForecastService:
    def __init__(
        self,
        db: Session,
        composer: Optional[RecommendationComposer] = None,
        deadline_seconds: Optional[float] = None,
    ):
        self.db = db
        self.composer = composer or RecommendationComposer()
        self.deadline_seconds = (
            settings.forecast_run_deadline_seconds if deadline_seconds is None else deadline_seconds
        )

    # ─────────────────────────────────────────────
    # TRIGGER
    # ─────────────────────────────────────────────

    def recompute_forecasts(self, organization_id: str, today: Optional[date] = None) -> ForecastRunResult:
        """
        Full recomputation for one tenant.

        Query failures abort the run (MovementQueryError); a persistence
        failure rolls back (ForecastPersistenceError). Collaborator failures
        never abort: the composer falls back to its template. Once the run
        deadline has passed, remaining items skip the collaborator.
        """
        run_log = log.bind(organization_id=organization_id)
        run_log.info("Iniciando cálculo de previsões")

        today = today or datetime.now(ZoneInfo(settings.timezone)).date()
        generated_at = datetime.utcnow()
        items = self._active_items(organization_id)
        run_log.info(f"Encontrados {len(items)} produtos")

        reader = MovementHistoryReader(self.db)
        started = time.monotonic()
        deadline_exceeded = False
        skipped = 0
        forecasts: List[ItemForecast] = []

        for item in items:
            if not deadline_exceeded and time.monotonic() - started >= self.deadline_seconds:
                deadline_exceeded = True
                run_log.warning(
                    f"Prazo de {self.deadline_seconds:.0f}s excedido; "
                    f"produtos restantes usarão a recomendação padrão"
                )

            movements = reader.outbound_history(item.id, organization_id)

            try:
                forecast = forecast_item(
                    product_id=item.id,
                    item_name=item.name,
                    on_hand=float(item.quantity or 0),
                    unit_sale_price=float(item.sale_price or 0),
                    movements=movements,
                    composer=self.composer,
                    today=today,
                    exposure_threshold_days=settings.exposure_threshold_days,
                    allow_external=not deadline_exceeded,
                )
            except Exception as e:
                run_log.error(f"Erro ao calcular previsão do produto {item.id}: {e}")
                skipped += 1
                continue

            forecasts.append(forecast)

        records = self._replace_forecasts(organization_id, forecasts, generated_at)
        clear_for_organization(organization_id)

        names = {item.id: (item.name, item.sku) for item in items}
        preview = [
            serialize_forecast(r, *names.get(r.product_id, (None, None)))
            for r in records[: settings.forecast_preview_size]
        ]

        run_log.info(f"Previsões calculadas com sucesso: {len(records)} produtos")

        return ForecastRunResult(
            organization_id=organization_id,
            total=len(records),
            previsoes=preview,
            skipped=skipped,
            deadline_exceeded=deadline_exceeded,
        )

    def _active_items(self, organization_id: str) -> List[CatalogItem]:
        try:
            return (
                self.db.query(CatalogItem)
                .filter(
                    CatalogItem.organization_id == organization_id,
                    CatalogItem.active == True,  # noqa: E712
                )
                .order_by(CatalogItem.created_at, CatalogItem.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise MovementQueryError(
                f"Erro ao buscar produtos: {e}", organization_id=organization_id
            ) from e

    def _replace_forecasts(
        self, organization_id: str, forecasts: List[ItemForecast], generated_at: datetime
    ) -> List[ForecastRecord]:
        """Delete the tenant's previous forecasts and insert the new set, atomically."""
        records = [
            ForecastRecord(
                organization_id=organization_id,
                product_id=f.product_id,
                on_hand_quantity=f.on_hand_quantity,
                daily_velocity=f.daily_velocity,
                days_remaining=f.days_remaining,
                projected_stockout_date=f.projected_stockout_date,
                financial_exposure=f.financial_exposure,
                recommendation=f.recommendation,
                generated_at=generated_at,
            )
            for f in forecasts
        ]

        try:
            self.db.query(ForecastRecord).filter(
                ForecastRecord.organization_id == organization_id
            ).delete(synchronize_session=False)
            if records:
                self.db.add_all(records)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise ForecastPersistenceError(
                f"Erro ao salvar previsões: {e}", organization_id=organization_id
            ) from e

        return records

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def _forecast_rows(self, organization_id: str):
        return (
            self.db.query(ForecastRecord, CatalogItem.name, CatalogItem.sku)
            .join(CatalogItem, ForecastRecord.product_id == CatalogItem.id)
            .filter(ForecastRecord.organization_id == organization_id)
        )

    def list_forecasts(self, organization_id: str) -> List[Dict[str, Any]]:
        """Current forecasts, soonest stockout first, undefined projections last."""
        rows = (
            self._forecast_rows(organization_id)
            .order_by(
                ForecastRecord.days_remaining.is_(None),
                ForecastRecord.days_remaining.asc(),
                CatalogItem.name,
            )
            .all()
        )
        return [serialize_forecast(record, name, sku) for record, name, sku in rows]

    def stock_alerts(self, organization_id: str, limit_days: Optional[float] = None) -> List[Dict[str, Any]]:
        """Forecasts running out within limit_days (defined projections only)."""
        limit_days = settings.critical_days_threshold if limit_days is None else limit_days
        rows = (
            self._forecast_rows(organization_id)
            .filter(
                ForecastRecord.days_remaining.isnot(None),
                ForecastRecord.days_remaining <= limit_days,
            )
            .order_by(ForecastRecord.days_remaining.asc(), CatalogItem.name)
            .all()
        )
        return [serialize_forecast(record, name, sku) for record, name, sku in rows]

    def forecast_summary(self, organization_id: str) -> Dict[str, Any]:
        """Dashboard KPIs over the tenant's current forecasts."""
        row = (
            self.db.query(
                func.count(ForecastRecord.id).label("total"),
                func.avg(ForecastRecord.daily_velocity).label("avg_velocity"),
                func.sum(ForecastRecord.financial_exposure).label("exposure"),
                func.max(ForecastRecord.generated_at).label("last_generated"),
            )
            .filter(ForecastRecord.organization_id == organization_id)
            .first()
        )

        def _count_within(days: float) -> int:
            return (
                self.db.query(func.count(ForecastRecord.id))
                .filter(
                    ForecastRecord.organization_id == organization_id,
                    ForecastRecord.days_remaining.isnot(None),
                    ForecastRecord.days_remaining <= days,
                )
                .scalar()
            ) or 0

        return {
            "total_produtos": int(row.total or 0) if row else 0,
            "produtos_criticos": _count_within(settings.critical_days_threshold),
            "produtos_risco_30_dias": _count_within(settings.risk_days_threshold),
            "media_vendas_geral": round(float(row.avg_velocity or 0), 4) if row else 0.0,
            "perda_potencial_total": round(float(row.exposure or 0), 2) if row else 0.0,
            "ultima_atualizacao": row.last_generated.isoformat() if row and row.last_generated else None,
        }

    def organizations_with_active_items(self) -> List[str]:
        rows = (
            self.db.query(CatalogItem.organization_id)
            .filter(CatalogItem.active == True)  # noqa: E712
            .distinct()
            .order_by(CatalogItem.organization_id)
            .all()
        )
        return [r.organization_id for r in rows]
