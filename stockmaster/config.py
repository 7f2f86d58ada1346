"""
Configuration management for the StockMaster forecast engine
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "StockMaster Forecast Engine"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"
    timezone: str = "America/Sao_Paulo"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./stockmaster.db"

    # LLM Configuration (recommendation phrasing only)
    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    enable_llm_recommendations: bool = True
    llm_max_tokens: int = 300
    llm_timeout_seconds: float = 20.0
    llm_max_attempts: int = 2

    # Forecasting
    exposure_threshold_days: float = 10.0
    critical_days_threshold: float = 7.0
    risk_days_threshold: float = 30.0
    forecast_preview_size: int = 5
    forecast_run_deadline_seconds: float = 300.0

    # Scheduler
    enable_scheduler: bool = True
    forecast_schedule: str = "0 6 * * *"  # daily at 06:00 local time

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
