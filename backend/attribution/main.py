"""FastAPI application entry point."""

import logging

from attribution.core.logging import setup_logging

setup_logging()

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from attribution.api import analyze, health, stats
from attribution.config import settings
from attribution.middleware.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    service_error_handler,
    validation_exception_handler,
)
from attribution.services.errors import ServiceError
from attribution.utils.prometheus_metrics import setup_prometheus

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Commit Attribution API",
    description="Human, AI tool and automation bot attribution of public commit history",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_BASE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(analyze.router, prefix="/api", tags=["Analyze"])
app.include_router(stats.router, prefix="/api", tags=["Stats"])

setup_prometheus(app)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }


@app.on_event("startup")
async def startup_event():
    """Application startup tasks."""
    # Ensure MongoDB indexes exist
    try:
        from attribution.database.ensure_indexes import ensure_indexes
        from attribution.database.mongo import get_database

        ensure_indexes(get_database())
    except Exception as e:
        logger.warning(f"Failed to ensure database indexes: {e}")

    if not settings.GITHUB_TOKENS:
        logger.warning("No GitHub tokens configured. Set GITHUB_TOKENS env var.")
    if not (settings.ANALYZE_API_KEY or "").strip():
        logger.warning("ANALYZE_API_KEY is not set; privileged operations will be rejected")
