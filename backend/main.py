"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from api import sync
from config import settings
from integrations.source_registry import ALL_SOURCE_NAMES
from logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Daily Sync",
    description="Incremental daily sync of sales, ads and analytics data",
    version="0.1.0",
)

# Include API routers
app.include_router(sync.router)


@app.get("/health")
def health_check():
    """Health check endpoint, listing the sources each sync covers."""
    return {
        "status": "ok",
        "timezone": settings.SYNC_TIMEZONE,
        "sources": ALL_SOURCE_NAMES,
    }
