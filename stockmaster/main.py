"""
Stockmaster Forecast Engine
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from stockmaster.config import get_settings
from stockmaster.utils.logger import log
from stockmaster import __version__

# Import routers
from stockmaster.api import health, forecasts, profit_map

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    try:
        from stockmaster.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    if settings.enable_scheduler:
        try:
            from stockmaster.scheduler import start_scheduler
            start_scheduler()
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    if settings.enable_scheduler:
        from stockmaster.scheduler import stop_scheduler
        stop_scheduler()
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Inventory depletion forecasting and profit map

    - Projects when each product will run out, counting units sold inside kits
    - Estimates revenue at risk for items about to stock out
    - Phrases restock recommendations with Claude, with a fixed fallback text
    - Classifies sold items into Estrela / Estável / Sombra / Problemático
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(forecasts.router)
app.include_router(profit_map.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "stockmaster.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
