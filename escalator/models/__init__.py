# Database Models
from escalator.models.base import Base, TimestampMixin
from escalator.models.escalation_policy import EscalationPolicy, Subscriber
from escalator.models.group import Group
from escalator.models.ticket import ActionType, Ticket, TicketAction
from escalator.models.user import Device, DeviceType, User

__all__ = [
    "ActionType",
    "Base",
    "Device",
    "DeviceType",
    "EscalationPolicy",
    "Group",
    "Subscriber",
    "Ticket",
    "TicketAction",
    "TimestampMixin",
    "User",
]
