"""Wiring of the escalation engine's collaborators."""

from dataclasses import dataclass, field

from escalator.core.retry import RetryPolicy
from escalator.services.alert import AlertDispatcher
from escalator.services.availability import AvailabilityScheduler
from escalator.services.group_loader import BulkLoader
from escalator.services.group_store import GroupStore, SqlGroupStore
from escalator.services.notifications import (
    NotificationClient,
    ProviderNotificationClient,
)
from escalator.services.paging_queue import HttpPagingQueueClient, PagingQueueClient
from escalator.services.rotation import RotationScheduler
from escalator.services.ticket import TicketService
from escalator.services.ticket_store import SqlTicketStore, TicketStore
from escalator.services.timers import APSchedulerTimers, TimerService
from escalator.services.user_directory import SqlUserDirectory, UserDirectory


@dataclass
class EscalationEngine:
    """The schedulers and dispatcher sharing one set of collaborators."""

    timers: TimerService
    groups: GroupStore
    users: UserDirectory
    tickets: TicketStore
    queue: PagingQueueClient
    notifications: NotificationClient
    retry: RetryPolicy = field(default_factory=RetryPolicy.from_settings)

    def __post_init__(self) -> None:
        self.rotation = RotationScheduler(self.groups, self.timers)
        self.availability = AvailabilityScheduler(self.groups, self.timers)
        self.alerts = AlertDispatcher(
            self.groups,
            self.users,
            self.tickets,
            self.queue,
            self.notifications,
            retry=self.retry,
        )
        self.ticket_service = TicketService(self.tickets, self.queue, retry=self.retry)
        self.loader = BulkLoader(self.groups, self.rotation, self.availability)


def build_engine() -> EscalationEngine:
    """Production wiring: database stores, APScheduler, HTTP queue, providers."""
    return EscalationEngine(
        timers=APSchedulerTimers(),
        groups=SqlGroupStore(),
        users=SqlUserDirectory(),
        tickets=SqlTicketStore(),
        queue=HttpPagingQueueClient(),
        notifications=ProviderNotificationClient(),
    )
