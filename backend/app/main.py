"""
FastAPI Application Entry Point.

This is the main application file for the Shipping Service.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.redis_client import ping_redis, close_redis
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.order import Order
from backend.app.models.shipping_label import ShippingLabel
from backend.app.models.shipping_status_event import ShippingStatusEvent
from backend.app.models.audit_log import AuditLog

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    1. Creates database tables on startup.
    2. Releases database and Redis connections on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Shipping service started", extra={"api_version": settings.api_version})
    yield
    await close_redis()
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Shipping rates, labels and tracking for the social-commerce storefront",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Every error leaves as {"error_code", "message", "details"}
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness probe.

    The rate quote cache is optional, so a down Redis is reported but
    does not make the service unhealthy.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """Service banner with links to the docs and the shipping API."""
    return {
        "message": f"{settings.app_name} API",
        "docs": "/docs",
        "health": "/health",
        "shipping": f"/{settings.api_version}/shipping",
    }
