"""
Recommendation Composer

Turns the numbers of one forecast into a sentence for the stock manager.
Phrasing is delegated to a completion collaborator that only receives the
already-computed facts; any failure falls back to a fixed template, so a
forecast always carries non-empty text.
"""
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from stockmaster.utils.logger import log

NO_HISTORY_MESSAGE = (
    "Sem dados suficientes para previsão. Comece a registrar as saídas deste "
    "produto para que o sistema possa estimar quando o estoque vai acabar."
)


@dataclass(frozen=True)
class ForecastFacts:
    """Everything the collaborator may mention. It must not compute anything else."""
    item_name: str
    on_hand_quantity: float
    daily_velocity: float
    days_remaining: Optional[float]
    projected_stockout_date: Optional[date]
    financial_exposure: float = 0.0

    @property
    def has_projection(self) -> bool:
        return self.days_remaining is not None


class CompletionService(Protocol):
    def summarize(self, facts: ForecastFacts) -> Optional[str]:
        """Return phrased text, or None on any failure."""
        ...


def format_number(value: float, decimals: int = 2) -> str:
    """pt-BR number formatting: 1234.5 -> '1.234,50'."""
    text = f"{value:,.{decimals}f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value: float) -> str:
    return f"R$ {format_number(value, 2)}"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def format_days(value: float) -> str:
    """Whole days, halves rounded up: 0.5 -> '1', 2.5 -> '3'."""
    return str(int(math.floor(value + 0.5)))


def fallback_recommendation(facts: ForecastFacts) -> str:
    """Deterministic sentence built from the same facts sent to the collaborator."""
    if not facts.has_projection:
        return NO_HISTORY_MESSAGE

    text = (
        f"Seu produto {facts.item_name} tem {format_number(facts.on_hand_quantity)} unidades "
        f"restantes e uma média de {format_number(facts.daily_velocity)} saídas por dia. "
        f"Prevemos que o estoque acabará em {format_days(facts.days_remaining)} dias. "
        f"Recomendamos reabastecer até {format_date(facts.projected_stockout_date)}."
    )
    if facts.financial_exposure > 0:
        text += (
            f" Perda financeira estimada de {format_currency(facts.financial_exposure)} "
            f"caso o produto não seja reabastecido a tempo."
        )
    return text


class RecommendationComposer:
    def __init__(self, completion: Optional[CompletionService] = None):
        self.completion = completion

    def compose(self, facts: ForecastFacts, allow_external: bool = True) -> str:
        """
        Phrase a recommendation for one item.

        No projection (no sales history) returns the fixed invitation message
        without calling the collaborator. allow_external=False forces the
        template, used once the run deadline has passed.
        """
        if not facts.has_projection:
            return NO_HISTORY_MESSAGE

        if self.completion is None or not allow_external:
            return fallback_recommendation(facts)

        try:
            text = self.completion.summarize(facts)
        except Exception as e:
            log.error(f"Erro ao chamar IA para {facts.item_name}: {e}")
            text = None

        if not text or not text.strip():
            log.warning(f"Usando recomendação padrão para {facts.item_name}")
            return fallback_recommendation(facts)

        return text.strip()
