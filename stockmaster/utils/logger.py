"""
Logging configuration

Every record carries the tenant it belongs to (`org`), "-" outside a
tenant-scoped run. Services bind it with `log.bind(organization_id=...)`.
"""
from loguru import logger
import os
import sys
from stockmaster.config import get_settings

settings = get_settings()

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>org={extra[organization_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | org={extra[organization_id]} | {name}:{function}:{line} - {message}"


def setup_logger():
    """Configure logger with console, daily forecast log and error sinks"""
    logger.remove()
    logger.configure(extra={"organization_id": "-"})

    logger.add(
        sys.stdout,
        colorize=True,
        format=LOG_FORMAT,
        level=settings.log_level
    )

    # Forecast runs write from worker threads (sync routes, scheduler jobs)
    logger.add(
        os.path.join(settings.log_dir, "forecasts_{time:YYYY-MM-DD}.log"),
        format=FILE_FORMAT,
        rotation="00:00",
        retention="30 days",
        compression="zip",
        enqueue=True,
        level="INFO"
    )

    logger.add(
        os.path.join(settings.log_dir, "errors_{time:YYYY-MM-DD}.log"),
        format=FILE_FORMAT,
        rotation="00:00",
        retention="90 days",
        enqueue=True,
        backtrace=False,
        level="ERROR"
    )

    return logger


# Initialize logger
log = setup_logger()
