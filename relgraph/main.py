"""
Application entry point: FastAPI app with database pool lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from relgraph.config import settings
from relgraph.db.pool import db_pool
from relgraph.features.network_sync.api.router import (
    calendar_router,
    contacts_router,
    relationships_router,
)
from relgraph.infrastructure.observability.logging import get_logger, setup_logging
from relgraph.routes import health
from relgraph.services.calendar.google_client import google_calendar_service
from relgraph.services.infrastructure.encryption_service import validate_encryption_config

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    if not validate_encryption_config():
        logger.error("Token encryption is not usable; calendar sync will fail")

    await db_pool.initialize()
    logger.info("All services initialized successfully", services=["database_pool"])

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await google_calendar_service.close()
    except Exception as e:
        logger.error("Error closing calendar HTTP client", error=str(e))
        shutdown_errors.append(f"Calendar client: {e}")

    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Relationship Graph",
    description="Calendar-derived relationship graph service",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(calendar_router)
app.include_router(contacts_router)
app.include_router(relationships_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
