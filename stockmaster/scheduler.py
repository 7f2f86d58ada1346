"""
Scheduler for the nightly forecast recompute

Uses APScheduler to recompute every tenant's stock forecasts once a day.
Tenants are processed one after another; one tenant failing does not stop
the others.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from zoneinfo import ZoneInfo
import time

from stockmaster.services.llm_service import get_llm_service
from stockmaster.exceptions import StockmasterError
from stockmaster.services.forecast_service import StockForecastService
from stockmaster.services.recommendation import RecommendationComposer
from stockmaster.models.base import get_db
from stockmaster.config import get_settings
from stockmaster.utils.logger import log

settings = get_settings()
scheduler = AsyncIOScheduler()


def recompute_all_forecasts() -> dict:
    """Recompute forecasts for every organization with active products (daily)"""
    start = time.time()
    results = {}
    db = next(get_db())

    try:
        service = StockForecastService(db, composer=RecommendationComposer(get_llm_service()))
        organizations = service.organizations_with_active_items()
        log.info(f"Starting scheduled forecast recompute for {len(organizations)} organizations...")

        for organization_id in organizations:
            try:
                result = service.recompute_forecasts(organization_id)
                results[organization_id] = result.total
            except StockmasterError as e:
                log.bind(organization_id=organization_id).error(f"Forecast recompute failed: {e.message}")
                results[organization_id] = None

    finally:
        db.close()

    log.info(f"Scheduled forecast recompute finished in {time.time() - start:.1f}s")
    return results


def setup_scheduler():
    """
    Configure the scheduler.

    Cron expression and timezone come from settings (default 06:00 America/Sao_Paulo).
    """
    scheduler.add_job(
        recompute_all_forecasts,
        trigger=CronTrigger.from_crontab(
            settings.forecast_schedule, timezone=ZoneInfo(settings.timezone)
        ),
        id='forecast_recompute',
        name='Stock Forecast Recompute',
        replace_existing=True,
        max_instances=1
    )
    log.info(f"Forecast recompute scheduled: '{settings.forecast_schedule}' ({settings.timezone})")


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
    log.info("Scheduler stopped")
