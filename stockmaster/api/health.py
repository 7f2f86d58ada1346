"""
Health check and status endpoints
"""
from fastapi import APIRouter
from datetime import datetime
from stockmaster.config import get_settings
from stockmaster import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status():
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "features": {
            "llm_recommendations": bool(settings.enable_llm_recommendations and settings.anthropic_api_key),
            "scheduler": settings.enable_scheduler,
        },
        "timestamp": datetime.utcnow().isoformat()
    }
