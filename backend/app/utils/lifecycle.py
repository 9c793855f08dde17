# /app/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from app.utils.logging import setup_logging
from app.utils.alerting import alerting_service
from app.services.cache_service import cache_service
from app.services.db_service import db_service
from app.services.memory_store import InMemoryDatabaseService
from app.config.settings import settings

# This file manages the application's lifespan, handling startup tasks like
# initializing services and shutdown tasks like cleaning up connections.

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()

    logger.info("Application starting up...")

    await db_service.create_indexes()
    if isinstance(db_service, InMemoryDatabaseService) and settings.environment == "development":
        await db_service.seed_demo_data()

    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    await alerting_service.cleanup()
    await cache_service.close()
    db_service.close()
