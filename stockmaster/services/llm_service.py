"""
LLM Service for stock recommendations
Phrases pre-computed forecast facts as a short natural-language recommendation
"""
from functools import lru_cache
from typing import Optional

import anthropic
from anthropic import Anthropic

from stockmaster.config import get_settings
from stockmaster.services.recommendation import (
    ForecastFacts,
    format_currency,
    format_date,
    format_days,
    format_number,
)
from stockmaster.utils.logger import log
from stockmaster.utils.retry import retry_sync

settings = get_settings()

RETRYABLE_LLM_ERRORS = (
    anthropic.APIConnectionError,  # includes APITimeoutError
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


def build_recommendation_prompt(facts: ForecastFacts) -> str:
    """Prompt carrying only the computed facts; the model phrases, never calculates."""
    lines = [
        f"- Produto: {facts.item_name}",
        f"- Estoque atual: {format_number(facts.on_hand_quantity)} unidades",
        f"- Média diária de saída: {format_number(facts.daily_velocity)} unidades",
        f"- Dias restantes estimados: {format_days(facts.days_remaining)} dias",
        f"- Data estimada de ruptura: {format_date(facts.projected_stockout_date)}",
    ]
    if facts.financial_exposure > 0:
        lines.append(f"- Perda financeira estimada: {format_currency(facts.financial_exposure)}")

    data = "\n".join(lines)

    return f"""Você é uma assistente de gestão de estoque inteligente.
Analise os dados abaixo e gere uma recomendação breve e objetiva para o gestor.
Use exatamente os números informados; não faça nenhum cálculo adicional.

Dados:
{data}

Gere uma resposta curta e direta no formato:
"Seu produto [NOME] tem [X] unidades restantes e uma média de [Y] saídas por dia. Prevemos que o estoque acabará em [Z] dias. Recomendamos reabastecer até [DATA]."

Seja conciso e objetivo."""


class LLMService:
    """
    Completion collaborator backed by Claude.

    summarize() never raises: every failure (timeout, connection, non-success
    status, empty content) is logged and reported as None so the composer can
    fall back to its template.
    """

    def __init__(self, client: Optional[Anthropic] = None):
        self.enabled = bool(
            client is not None
            or (settings.enable_llm_recommendations and settings.anthropic_api_key)
        )
        self.client = None
        self._create = None

        if not self.enabled:
            log.info("LLM recommendations disabled (no API key or feature disabled)")
            return

        try:
            # The SDK's own retries are off; retry_sync below owns the policy
            self.client = client or Anthropic(
                api_key=settings.anthropic_api_key,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
            )
            self._create = retry_sync(
                max_attempts=max(1, settings.llm_max_attempts),
                base_delay=0.5,
                max_delay=5.0,
                retryable_exceptions=RETRYABLE_LLM_ERRORS,
            )(self.client.messages.create)
            log.info("LLM Service initialized with Claude")
        except Exception as e:
            log.error(f"Failed to initialize Anthropic client: {str(e)}")
            self.enabled = False

    def summarize(self, facts: ForecastFacts) -> Optional[str]:
        if not self.enabled or not facts.has_projection:
            return None

        try:
            response = self._create(
                model=settings.llm_model,
                max_tokens=settings.llm_max_tokens,
                messages=[{"role": "user", "content": build_recommendation_prompt(facts)}],
            )
            text = "".join(
                block.text for block in response.content
                if getattr(block, "type", None) == "text"
            ).strip()
            if not text:
                log.warning(f"Empty LLM response for {facts.item_name}")
                return None

            log.info(f"Generated stock recommendation via LLM for {facts.item_name}")
            return text

        except Exception as e:
            log.error(f"Error generating stock recommendation: {str(e)}")
            return None

    def is_available(self) -> bool:
        return self.enabled


@lru_cache()
def get_llm_service() -> LLMService:
    """Process-wide LLM service (one Anthropic client)"""
    return LLMService()
