"""
Stock Forecast API

Trigger a full recompute for a tenant and read the resulting forecasts,
dashboard summary and stock alerts.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stockmaster.exceptions import StockmasterError
from stockmaster.models.base import get_db
from stockmaster.services.forecast_service import StockForecastService
from stockmaster.services.llm_service import get_llm_service
from stockmaster.services.recommendation import RecommendationComposer
from stockmaster.utils.cache import get_cached, set_cached, _MISS
from stockmaster.utils.logger import log

router = APIRouter(prefix="/forecasts", tags=["forecasts"])


def get_forecast_service(db: Session = Depends(get_db)) -> StockForecastService:
    return StockForecastService(db, composer=RecommendationComposer(get_llm_service()))


@router.post("/{organization_id}/recompute")
def recompute_forecasts(
    organization_id: str,
    service: StockForecastService = Depends(get_forecast_service),
):
    """
    Recompute every active product's forecast for the tenant.

    Synchronous: returns once all items are processed and the new set has
    replaced the old one. Callers must not run two recomputes for the same
    tenant at once.
    """
    try:
        result = service.recompute_forecasts(organization_id)
        return result.to_dict()
    except StockmasterError as e:
        log.error(f"Erro ao calcular previsões: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)


@router.get("/{organization_id}")
async def list_forecasts(
    organization_id: str,
    service: StockForecastService = Depends(get_forecast_service),
):
    """Current forecasts, soonest stockout first."""
    cache_key = f"forecasts|{organization_id}"
    cached = get_cached(cache_key)
    if cached is not _MISS:
        return cached
    try:
        forecasts = service.list_forecasts(organization_id)
        result = {"success": True, "count": len(forecasts), "data": forecasts}
        set_cached(cache_key, result, 300)
        return result
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{organization_id}/summary")
async def forecast_summary(
    organization_id: str,
    service: StockForecastService = Depends(get_forecast_service),
):
    """KPIs for the forecast dashboard."""
    cache_key = f"forecast_summary|{organization_id}"
    cached = get_cached(cache_key)
    if cached is not _MISS:
        return cached
    try:
        result = {"success": True, "data": service.forecast_summary(organization_id)}
        set_cached(cache_key, result, 300)
        return result
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{organization_id}/alerts")
async def stock_alerts(
    organization_id: str,
    limite_dias: Optional[float] = Query(None, ge=0, description="Alert when days remaining <= this (default 7)"),
    service: StockForecastService = Depends(get_forecast_service),
):
    """Products expected to run out within the limit."""
    try:
        alerts = service.stock_alerts(organization_id, limit_days=limite_dias)
        return {"success": True, "alertas": len(alerts), "data": alerts}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
