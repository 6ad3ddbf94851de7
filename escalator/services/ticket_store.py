"""Ticket persistence: lookups, audit-trail appends and page bookkeeping."""

import uuid
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escalator.core.errors import NotFoundError
from escalator.database import get_session_maker
from escalator.models.ticket import ActionType, Ticket, TicketAction


class TicketStore(Protocol):
    async def get(self, ticket_id: uuid.UUID) -> Ticket: ...

    async def add_action(
        self,
        ticket_id: uuid.UUID,
        action_type: ActionType,
        user_id: uuid.UUID | None = None,
    ) -> TicketAction: ...

    async def set_page_ids(self, ticket_id: uuid.UUID, page_ids: list[str]) -> Ticket: ...

    async def close(self, ticket_id: uuid.UUID) -> Ticket: ...


def _not_found(ticket_id: uuid.UUID) -> NotFoundError:
    return NotFoundError(f"No such ticket exists: {ticket_id}")


class SqlTicketStore:
    """TicketStore backed by the ``tickets`` and ``ticket_actions`` tables."""

    def __init__(
        self, session_maker: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        self._session_maker = session_maker

    def _session(self) -> AsyncSession:
        maker = self._session_maker or get_session_maker()
        return maker()

    @staticmethod
    async def _load(db: AsyncSession, ticket_id: uuid.UUID) -> Ticket:
        result = await db.execute(select(Ticket).where(Ticket.id == ticket_id))
        ticket = result.scalar_one_or_none()
        if ticket is None:
            raise _not_found(ticket_id)
        return ticket

    async def get(self, ticket_id: uuid.UUID) -> Ticket:
        async with self._session() as db:
            return await self._load(db, ticket_id)

    async def add_action(
        self,
        ticket_id: uuid.UUID,
        action_type: ActionType,
        user_id: uuid.UUID | None = None,
    ) -> TicketAction:
        async with self._session() as db:
            await self._load(db, ticket_id)
            action = TicketAction(
                ticket_id=ticket_id,
                action_type=action_type,
                user_id=user_id,
                timestamp=datetime.now(UTC),
            )
            db.add(action)
            await db.commit()
            await db.refresh(action)
            return action

    async def set_page_ids(self, ticket_id: uuid.UUID, page_ids: list[str]) -> Ticket:
        async with self._session() as db:
            ticket = await self._load(db, ticket_id)
            ticket.page_ids = [*ticket.page_ids, *page_ids]
            await db.commit()
            await db.refresh(ticket)
            return ticket

    async def close(self, ticket_id: uuid.UUID) -> Ticket:
        async with self._session() as db:
            ticket = await self._load(db, ticket_id)
            ticket.is_open = False
            db.add(
                TicketAction(
                    ticket_id=ticket_id,
                    action_type=ActionType.CLOSED,
                    timestamp=datetime.now(UTC),
                )
            )
            await db.commit()
            await db.refresh(ticket)
            return ticket


class InMemoryTicketStore:
    """Dictionary-backed TicketStore for local development and tests."""

    def __init__(self, tickets: list[Ticket] | None = None) -> None:
        self._tickets: dict[uuid.UUID, Ticket] = {}
        for ticket in tickets or []:
            self.add(ticket)

    def add(self, ticket: Ticket) -> Ticket:
        if ticket.id is None:
            ticket.id = uuid.uuid4()
        if ticket.page_ids is None:
            ticket.page_ids = []
        if ticket.is_open is None:
            ticket.is_open = True
        self._tickets[ticket.id] = ticket
        return ticket

    async def get(self, ticket_id: uuid.UUID) -> Ticket:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            raise _not_found(ticket_id)
        return ticket

    async def add_action(
        self,
        ticket_id: uuid.UUID,
        action_type: ActionType,
        user_id: uuid.UUID | None = None,
    ) -> TicketAction:
        ticket = await self.get(ticket_id)
        action = TicketAction(
            id=uuid.uuid4(),
            ticket_id=ticket_id,
            action_type=action_type,
            user_id=user_id,
            timestamp=datetime.now(UTC),
        )
        ticket.actions.append(action)
        return action

    async def set_page_ids(self, ticket_id: uuid.UUID, page_ids: list[str]) -> Ticket:
        ticket = await self.get(ticket_id)
        ticket.page_ids = [*ticket.page_ids, *page_ids]
        return ticket

    async def close(self, ticket_id: uuid.UUID) -> Ticket:
        ticket = await self.get(ticket_id)
        ticket.is_open = False
        await self.add_action(ticket_id, ActionType.CLOSED)
        return ticket
