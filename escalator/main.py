"""Escalator FastAPI application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from escalator.config import settings
from escalator.database import close_database
from escalator.logging_config import get_logger, setup_logging
from escalator.middleware import CorrelationIdMiddleware
from escalator.routers import alerts, groups, health, tickets
from escalator.services.engine import build_engine

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the timers, rebuild pending jobs from storage, and tear down."""
    engine = build_engine()
    app.state.engine = engine
    engine.timers.start()
    logger.info("Escalation timers started")

    # Timers live only in memory, so every pending transition is re-armed
    # from the persisted policies on startup.
    if settings.bulk_load_enabled and not settings.testing:
        summary = await engine.loader.load_all()
        logger.info("Pending escalation jobs restored", **summary)

    yield

    logger.info("Shutting down escalator API...")
    engine.timers.shutdown()
    app.state.engine = None
    await close_database()
    logger.info("Escalator API shutdown complete")


app = FastAPI(
    title="Escalator API",
    description="On-call paging and escalation engine",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(tickets.router)
app.include_router(groups.router)
app.include_router(alerts.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "Escalator API",
        "version": "0.1.0",
        "docs": "/docs",
    }
