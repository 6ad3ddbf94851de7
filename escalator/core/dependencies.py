"""FastAPI dependencies shared by the routers."""

import hmac

from fastapi import Header, HTTPException, Request, status

from escalator.config import settings
from escalator.core.errors import (
    ConflictError,
    EscalatorError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from escalator.services.engine import EscalationEngine


def get_escalation_engine(request: Request) -> EscalationEngine:
    """Return the engine created in the application lifespan."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Escalation engine not started",
        )
    return engine


def require_queue_secret(authorization: str | None = Header(default=None)) -> None:
    """Only the paging queue may call back into the page delivery endpoint."""
    if (
        not settings.queue_secret
        or authorization is None
        or not hmac.compare_digest(authorization, settings.queue_secret)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid queue credentials",
        )


_STATUS_FOR_ERROR: dict[type[EscalatorError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    TransportError: status.HTTP_502_BAD_GATEWAY,
}


def http_error(exc: EscalatorError) -> HTTPException:
    """Translate an engine error into the HTTP error a router raises."""
    code = _STATUS_FOR_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=str(exc))
