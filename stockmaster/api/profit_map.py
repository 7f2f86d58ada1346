"""
Profit Map API

Quadrant classification (Estrela / Estável / Sombra / Problemático) of every
item sold in the selected period. Always computed fresh from the ledger.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stockmaster.exceptions import StockmasterError
from stockmaster.models.base import get_db
from stockmaster.services.profit_quadrant_service import ProfitQuadrantService

router = APIRouter(prefix="/profit-map", tags=["profit-map"])


@router.get("/{organization_id}")
async def get_profit_map(
    organization_id: str,
    period: str = Query("30", pattern="^(7|15|30|mes)$", description="7, 15, 30 days or mes (month to date)"),
    tipo: str = Query("ambos", pattern="^(produtos|kits|ambos)$"),
    start_date: Optional[date] = Query(None, description="Overrides period when given with end_date"),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    """Classify every item sold in the period relative to the rest of the cohort."""
    if (start_date is None) != (end_date is None):
        raise HTTPException(status_code=400, detail="start_date and end_date must be given together")
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")

    try:
        service = ProfitQuadrantService(db)
        data = service.get_profit_map(
            organization_id,
            period=period,
            tipo=tipo,
            start_date=start_date,
            end_date=end_date,
        )
        return {"success": True, "data": data}
    except StockmasterError as e:
        raise HTTPException(status_code=500, detail=e.message)
