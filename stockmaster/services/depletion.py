"""
Depletion math: sales velocity, days until stockout, financial exposure.

Pure functions over already-fetched data. A flat mean-rate
model: every historical outbound unit counts the same regardless of age,
with no trend, seasonality or decay.

  velocity       = total units / max(1, ceil(days between first and last sale))
  days remaining = on hand / velocity              (None when velocity == 0)
  exposure       = velocity x sale price x days    (only when days < 10)
"""
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from stockmaster.services.kit_expansion import OutboundMovement

SECONDS_PER_DAY = 86400.0
DEFAULT_EXPOSURE_THRESHOLD_DAYS = 10.0


@dataclass(frozen=True)
class SalesVelocity:
    total_units: float
    selling_window_days: int
    daily_velocity: float
    event_count: int

    @property
    def has_history(self) -> bool:
        return self.event_count > 0


@dataclass(frozen=True)
class DepletionProjection:
    days_remaining: Optional[float]
    projected_stockout_date: Optional[date]

    @property
    def is_defined(self) -> bool:
        return self.days_remaining is not None


def selling_window_days(first: datetime, last: datetime) -> int:
    """Whole days spanned by the sales, never less than 1."""
    span = (last - first).total_seconds() / SECONDS_PER_DAY
    return max(1, int(math.ceil(span)))


def compute_sales_velocity(movements: Sequence[OutboundMovement]) -> SalesVelocity:
    """Reduce an item's outbound history to a mean units-per-day figure."""
    if not movements:
        return SalesVelocity(
            total_units=0.0,
            selling_window_days=1,
            daily_velocity=0.0,
            event_count=0,
        )

    total_units = float(sum(m.quantity for m in movements))
    first = min(m.occurred_at for m in movements)
    last = max(m.occurred_at for m in movements)
    window = selling_window_days(first, last)

    return SalesVelocity(
        total_units=total_units,
        selling_window_days=window,
        daily_velocity=total_units / window if total_units > 0 else 0.0,
        event_count=len(movements),
    )


def project_depletion(on_hand: float, daily_velocity: float, today: date) -> DepletionProjection:
    """
    Days until on-hand stock runs out at the current velocity.

    Zero velocity means "insufficient data", not "infinite": both fields are
    None. days_remaining is left unrounded; the stockout date floors it.
    """
    if daily_velocity <= 0:
        return DepletionProjection(days_remaining=None, projected_stockout_date=None)

    days_remaining = max(0.0, float(on_hand)) / daily_velocity
    return DepletionProjection(
        days_remaining=days_remaining,
        projected_stockout_date=today + timedelta(days=math.floor(days_remaining)),
    )


def estimate_financial_exposure(
    daily_velocity: float,
    unit_sale_price: float,
    days_remaining: Optional[float],
    threshold_days: float = DEFAULT_EXPOSURE_THRESHOLD_DAYS,
) -> float:
    """Revenue at risk over the remaining runway, for near-term stockouts only."""
    if days_remaining is None or days_remaining >= threshold_days:
        return 0.0
    return daily_velocity * unit_sale_price * days_remaining


def urgency_level(days_remaining: Optional[float]) -> str:
    """Badge level used by the forecast dashboard and alert listing."""
    if days_remaining is None:
        return "no_data"
    days = math.floor(days_remaining)
    if days <= 3:
        return "critical"
    if days <= 7:
        return "warning"
    if days <= 30:
        return "attention"
    return "ok"
