"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from escalator.database import check_database_connection

router = APIRouter(tags=["Health"])


def _timer_status(request: Request) -> dict[str, Any]:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        return {"scheduler": "stopped", "pending_jobs": 0}
    return {"scheduler": "running", "pending_jobs": len(engine.timers.pending())}


@router.get("/health", response_model=None)
async def health_check(request: Request) -> Response:
    """Database and scheduler status.

    Returns 200 with ``"status": "healthy"`` when the database answers,
    503 with ``"status": "degraded"`` otherwise. Pending job counts are
    informational: a restart rebuilds them.
    """
    db_connected = await check_database_connection()
    content = {
        "status": "healthy" if db_connected else "degraded",
        "database": "connected" if db_connected else "disconnected",
        **_timer_status(request),
    }
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if db_connected else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=content,
    )


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """Liveness probe; never checks external dependencies."""
    return {"status": "alive"}


@router.get("/health/ready", response_model=None)
async def readiness_probe() -> Response:
    """Readiness probe; ready only while the database is reachable."""
    if await check_database_connection():
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "database": "connected"},
        )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "database": "disconnected"},
    )
