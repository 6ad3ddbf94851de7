"""Page request schemas shared with the paging queue."""

import uuid

from pydantic import BaseModel, Field


class PageDevice(BaseModel):
    """Snapshot of the device a page is addressed to."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    name: str
    type: str
    contact_information: str


class PageRequest(BaseModel):
    """One delayed page for one device.

    ``delay_ms`` is measured from the moment the ticket opened, not from
    the previous page, so the queue can schedule every request on its own.
    """

    ticket_id: uuid.UUID
    user_id: uuid.UUID
    device: PageDevice
    delay_ms: int = Field(ge=0)
    title: str


class PageHandle(BaseModel):
    """Queue-side identifier for a submitted page."""

    page_id: str
    ticket_id: uuid.UUID


class PageCallbackRequest(BaseModel):
    """Body the paging queue posts when a page's delay has elapsed."""

    ticket_id: uuid.UUID
    user_id: uuid.UUID
    device_id: uuid.UUID
