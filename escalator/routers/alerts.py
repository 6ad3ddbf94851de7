"""Paging queue callback: deliver one page now."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from escalator.core.dependencies import (
    get_escalation_engine,
    http_error,
    require_queue_secret,
)
from escalator.core.errors import EscalatorError
from escalator.schemas.page import PageCallbackRequest
from escalator.services.engine import EscalationEngine

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.post(
    "/page",
    dependencies=[Depends(require_queue_secret)],
    response_model=None,
)
async def send_page(
    body: PageCallbackRequest,
    engine: EscalationEngine = Depends(get_escalation_engine),
) -> JSONResponse:
    """Send a page whose delay has elapsed in the paging queue.

    Returns ``{"delivered": false}`` when the ticket was closed before the
    page fired.
    """
    try:
        delivered = await engine.alerts.deliver_page(
            body.ticket_id, body.user_id, body.device_id
        )
    except EscalatorError as exc:
        raise http_error(exc) from exc
    return JSONResponse(content={"delivered": delivered})
