"""Ticket action and alert schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from escalator.models.ticket import ActionType
from escalator.schemas.page import PageRequest


class TicketActionResponse(BaseModel):
    """One entry in a ticket's audit trail."""

    model_config = {"from_attributes": True}

    action_type: ActionType
    user_id: uuid.UUID | None
    timestamp: datetime


class TicketActionCreate(BaseModel):
    """Request to append a responder action to a ticket."""

    action_type: ActionType
    user_id: uuid.UUID | None = None


class AlertResponse(BaseModel):
    """Result of fanning a ticket out to its group."""

    ticket_id: uuid.UUID
    page_requests: list[PageRequest]
    page_ids: list[str]
    count: int


class TicketCloseResponse(BaseModel):
    """Result of closing a ticket."""

    ticket_id: uuid.UUID
    is_open: bool
    cancelled_page_ids: list[str]
