"""
Main FastAPI application.

This is the entry point for the API server.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from canopy.core.config import settings
from canopy.errors import AppError, DomainError, app_error_handler, domain_error_handler
from canopy.routers import billing, health, pipeline

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; nothing to release on shutdown."""
    configure_logging()
    logger.info("Starting %s...", settings.APP_NAME)

    yield

    logger.info("Shutting down %s...", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Pipeline stages, transition planning, credits and feature gates for the Canopy ATS",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(DomainError, domain_error_handler)

app.include_router(health.router, tags=["Health"])
app.include_router(pipeline.router)
app.include_router(billing.router)
