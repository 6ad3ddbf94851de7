"""Ticket and ticket action models.

A ticket is an incident raised against a group. Its ``actions`` form an
append-only audit trail of what the engine and responders did.
"""

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from escalator.models.base import Base, TimestampMixin


class ActionType(str, enum.Enum):
    """Kind of entry in a ticket's audit trail."""

    CREATED = "CREATED"
    PAGE_SENT = "PAGE_SENT"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    REJECTED = "REJECTED"
    CLOSED = "CLOSED"


class Ticket(Base, TimestampMixin):
    """An incident that pages a group's escalation policy."""

    __tablename__ = "tickets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    group_name: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("groups.name", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    is_open: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    # Identifiers returned by the paging queue, used to cancel on close
    page_ids: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
    )

    actions: Mapped[list["TicketAction"]] = relationship(
        "TicketAction",
        back_populates="ticket",
        order_by="TicketAction.timestamp",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Ticket(id={self.id}, group={self.group_name!r}, "
            f"open={self.is_open})>"
        )


class TicketAction(Base):
    """One entry in a ticket's audit trail."""

    __tablename__ = "ticket_actions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    action_type: Mapped[ActionType] = mapped_column(
        Enum(
            ActionType,
            name="ticketactiontype",
            create_type=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    # Responder or paged user, when the action concerns one
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
    )

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    ticket = relationship("Ticket", back_populates="actions")

    def __repr__(self) -> str:
        return f"<TicketAction(type={self.action_type.value}, ticket={self.ticket_id})>"
