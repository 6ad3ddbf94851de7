"""Ticket lifecycle operations that touch the paging queue."""

import uuid

from escalator.core.errors import ValidationError
from escalator.core.retry import RetryPolicy
from escalator.logging_config import get_logger
from escalator.models.ticket import ActionType, Ticket, TicketAction
from escalator.services.paging_queue import PagingQueueClient
from escalator.services.ticket_store import TicketStore

logger = get_logger(__name__)

# Actions responders may record; the engine records the others itself
RESPONDER_ACTIONS = frozenset({ActionType.ACKNOWLEDGED, ActionType.REJECTED})


class TicketService:
    """Responder actions and ticket closure."""

    def __init__(
        self,
        tickets: TicketStore,
        queue: PagingQueueClient,
        *,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._tickets = tickets
        self._queue = queue
        self._retry = retry or RetryPolicy.from_settings()

    async def add_action(
        self,
        ticket_id: uuid.UUID,
        action_type: ActionType,
        user_id: uuid.UUID | None = None,
    ) -> TicketAction:
        """Append a responder action to an open ticket.

        Raises:
            ValidationError: For engine-owned action types or a closed ticket.
            NotFoundError: If the ticket does not exist.
        """
        if action_type not in RESPONDER_ACTIONS:
            raise ValidationError(f"Action {action_type.value} cannot be added directly")

        ticket = await self._tickets.get(ticket_id)
        if not ticket.is_open:
            raise ValidationError(f"Ticket {ticket_id} is closed")

        return await self._tickets.add_action(ticket_id, action_type, user_id)

    async def close_ticket(self, ticket_id: uuid.UUID) -> tuple[Ticket, list[str]]:
        """Close the ticket and cancel any pages that have not fired.

        Returns:
            The closed ticket and the page ids whose cancellation was requested.

        Raises:
            NotFoundError: If the ticket does not exist.
            TransportError: If the queue rejects the cancellation after retries.
        """
        ticket = await self._tickets.get(ticket_id)
        if not ticket.is_open:
            return ticket, []

        page_ids = list(ticket.page_ids or [])
        if page_ids:
            await self._retry.call(self._queue.cancel, page_ids)

        ticket = await self._tickets.close(ticket_id)
        logger.info(
            "Ticket closed",
            ticket_id=str(ticket_id),
            cancelled_pages=len(page_ids),
        )
        return ticket, page_ids
