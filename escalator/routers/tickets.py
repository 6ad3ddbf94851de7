"""Ticket alerting endpoints: fan-out, responder actions, closure."""

import uuid

from fastapi import APIRouter, Depends, status

from escalator.core.dependencies import get_escalation_engine, http_error
from escalator.core.errors import EscalatorError
from escalator.schemas.ticket import (
    AlertResponse,
    TicketActionCreate,
    TicketActionResponse,
    TicketCloseResponse,
)
from escalator.services.engine import EscalationEngine

router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.post(
    "/{ticket_id}/alerts",
    response_model=AlertResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_alert(
    ticket_id: uuid.UUID,
    engine: EscalationEngine = Depends(get_escalation_engine),
) -> AlertResponse:
    """Page the ticket's group according to its escalation policy."""
    try:
        ticket = await engine.tickets.get(ticket_id)
        requests = await engine.alerts.create_alert(ticket)
        ticket = await engine.tickets.get(ticket_id)
    except EscalatorError as exc:
        raise http_error(exc) from exc

    return AlertResponse(
        ticket_id=ticket_id,
        page_requests=requests,
        page_ids=list(ticket.page_ids or []),
        count=len(requests),
    )


@router.post(
    "/{ticket_id}/actions",
    response_model=TicketActionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_action(
    ticket_id: uuid.UUID,
    body: TicketActionCreate,
    engine: EscalationEngine = Depends(get_escalation_engine),
) -> TicketActionResponse:
    """Record an acknowledgement or rejection from a responder."""
    try:
        action = await engine.ticket_service.add_action(
            ticket_id, body.action_type, body.user_id
        )
    except EscalatorError as exc:
        raise http_error(exc) from exc
    return TicketActionResponse.model_validate(action)


@router.post("/{ticket_id}/close", response_model=TicketCloseResponse)
async def close_ticket(
    ticket_id: uuid.UUID,
    engine: EscalationEngine = Depends(get_escalation_engine),
) -> TicketCloseResponse:
    """Close the ticket and cancel pages that have not fired yet."""
    try:
        ticket, cancelled = await engine.ticket_service.close_ticket(ticket_id)
    except EscalatorError as exc:
        raise http_error(exc) from exc

    return TicketCloseResponse(
        ticket_id=ticket_id,
        is_open=ticket.is_open,
        cancelled_page_ids=cancelled,
    )
