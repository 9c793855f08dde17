# /app/routes/public.py

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from app.config.settings import settings
from app.models.domain import utc_now
from app.services.ai_service import ai_service
from app.services.cache_service import cache_service
from app.services.db_service import db_service

# Unauthenticated endpoints: the service banner, health checks and the
# Prometheus scrape target.

router = APIRouter()

@router.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "StoreBot Cart Recovery & Chat API",
        "version": "1.0.0",
        "status": "operational",
        "environment": settings.environment
    }

@router.get("/health", summary="Basic Health Check")
async def health_check():
    """Reports the state of storage, cache and AI providers."""
    database_ok = await db_service.health_check()
    cache_ok = await cache_service.health_check()

    services = {
        "database": "connected" if database_ok else "error",
        "cache": "disabled" if cache_ok is None else ("connected" if cache_ok else "error"),
        "ai": "configured" if ai_service.is_configured else "not_configured",
    }
    healthy = database_ok and cache_ok is not False
    return {
        "status": "healthy" if healthy else "degraded",
        "services": services,
        "timestamp": utc_now(),
    }

@router.get("/metrics", tags=["Monitoring"])
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)
