"""Health check and statistics endpoints"""

from fastapi import APIRouter, Depends
from datetime import datetime
from app.api.dependencies import get_services
from app.config import settings
from app.services.container import CallServices

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0"
    }


@router.get("/health/detailed")
async def detailed_health_check(services: CallServices = Depends(get_services)):
    """Detailed health check with live call-handling state"""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "twilio_configured": bool(settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN),
        "openai_configured": bool(settings.OPENAI_API_KEY),
        "database_configured": bool(settings.DATABASE_URL),
        "active_calls": len(services.registry),
        "open_streams": len(services.accumulator),
        "dashboard_clients": len(services.broadcaster.subscribers),
    }


@router.get("/stats")
async def get_stats(services: CallServices = Depends(get_services)):
    """Same snapshot the dashboard receives"""
    stats = await services.stats.get_stats()
    return stats.to_payload()
