"""Alert fan-out and page delivery.

Opening a ticket expands into one page request per device of every active
subscriber on the group's escalation policy:

- subscribers are paged in policy order, each active subscriber
  ``paging_interval_minutes`` after the previous active one;
- within a subscriber, devices are paged in their stored order, each device
  after the first waiting ``user.delays[gap]`` minutes (or the configured
  default) after the previous device.

Every delay is relative to the moment the ticket opened. The resulting batch
goes to the paging queue, which does the waiting and calls back into
``deliver_page`` when each page is due.
"""

import uuid

from escalator.config import settings
from escalator.core.errors import NotFoundError, ValidationError
from escalator.core.retry import RetryPolicy
from escalator.logging_config import get_logger
from escalator.models.escalation_policy import EscalationPolicy
from escalator.models.ticket import ActionType, Ticket
from escalator.models.user import Device, DeviceType, User
from escalator.schemas.page import PageDevice, PageRequest
from escalator.services.group_store import GroupStore
from escalator.services.notifications import NotificationClient
from escalator.services.paging_queue import PagingQueueClient
from escalator.services.ticket_store import TicketStore
from escalator.services.user_directory import UserDirectory

logger = get_logger(__name__)

MS_PER_MINUTE = 60 * 1000


class AlertDispatcher:
    """Turns tickets into page requests and delivers individual pages."""

    def __init__(
        self,
        groups: GroupStore,
        users: UserDirectory,
        tickets: TicketStore,
        queue: PagingQueueClient,
        notifications: NotificationClient,
        *,
        retry: RetryPolicy | None = None,
        default_device_delay_minutes: int | None = None,
    ) -> None:
        self._groups = groups
        self._users = users
        self._tickets = tickets
        self._queue = queue
        self._notifications = notifications
        self._retry = retry or RetryPolicy.from_settings()
        self._default_device_delay = (
            default_device_delay_minutes
            if default_device_delay_minutes is not None
            else settings.default_device_delay_minutes
        )

    def _gap_delay(self, user: User, gap: int) -> int:
        delays = user.delays or []
        if gap < len(delays) and delays[gap] is not None:
            return delays[gap]
        return self._default_device_delay

    def generate_user_page_requests(
        self,
        ticket_id: uuid.UUID,
        user: User,
        base_delay_minutes: int,
        title: str,
    ) -> list[PageRequest]:
        """Build one page request per device of ``user``, in device order."""
        requests = []
        within_user_delay = 0

        for index, device in enumerate(user.devices):
            if index > 0:
                within_user_delay += self._gap_delay(user, index - 1)
            requests.append(
                PageRequest(
                    ticket_id=ticket_id,
                    user_id=user.id,
                    device=PageDevice.model_validate(device),
                    delay_ms=(base_delay_minutes + within_user_delay) * MS_PER_MINUTE,
                    title=title,
                )
            )

        return requests

    async def generate_all_page_requests(
        self, policy: EscalationPolicy, ticket: Ticket
    ) -> list[PageRequest]:
        """Build the page requests for every active subscriber of ``policy``.

        Inactive subscribers, and subscribers whose user no longer exists,
        are skipped without using up a paging slot.
        """
        requests: list[PageRequest] = []
        current_delay = 0

        for subscriber in policy.subscribers:
            if not subscriber.active:
                continue

            try:
                user = await self._users.get(subscriber.user_id)
            except NotFoundError:
                logger.warning(
                    "Subscribed user not found, skipping",
                    ticket_id=str(ticket.id),
                    user_id=str(subscriber.user_id),
                )
                continue

            requests.extend(
                self.generate_user_page_requests(
                    ticket.id, user, current_delay, ticket.title
                )
            )
            current_delay += policy.paging_interval_minutes

        return requests

    async def create_alert(self, ticket: Ticket) -> list[PageRequest]:
        """Fan ``ticket`` out to its group and submit the pages.

        Returns:
            The submitted page requests, in generation order.

        Raises:
            ValidationError: If the ticket is already closed.
            NotFoundError: If the ticket's group does not exist.
            TransportError: If the paging queue rejects the batch after retries.
        """
        if not ticket.is_open:
            raise ValidationError(f"Ticket {ticket.id} is closed")

        group = await self._groups.get(ticket.group_name)
        policy = group.policy
        requests = (
            await self.generate_all_page_requests(policy, ticket)
            if policy is not None
            else []
        )

        if not requests:
            logger.warning(
                "No pageable subscribers for ticket",
                ticket_id=str(ticket.id),
                group=ticket.group_name,
            )
            await self._tickets.add_action(ticket.id, ActionType.CREATED)
            return []

        handles = await self._retry.call(self._queue.submit_batch, requests)
        if handles:
            await self._tickets.set_page_ids(ticket.id, [h.page_id for h in handles])
        await self._tickets.add_action(ticket.id, ActionType.PAGE_SENT)

        logger.info(
            "Alert created",
            ticket_id=str(ticket.id),
            group=ticket.group_name,
            page_count=len(requests),
        )
        return requests

    async def send_page(self, ticket: Ticket, user: User, device: Device) -> None:
        """Deliver one page now through the device's channel.

        Raises:
            ValidationError: If the device type is not email, sms or phone.
            TransportError: If the provider fails after retries.
        """
        senders = {
            DeviceType.EMAIL.value: self._notifications.send_email,
            DeviceType.SMS.value: self._notifications.send_sms,
            DeviceType.PHONE.value: self._notifications.send_voice_call,
        }
        sender = senders.get(device.type)
        if sender is None:
            raise ValidationError(
                f'Invalid device type: {device.type} on User: "{user.id}"'
            )

        await self._retry.call(sender, ticket, user, device)
        await self._tickets.add_action(ticket.id, ActionType.PAGE_SENT, user.id)

    async def deliver_page(
        self, ticket_id: uuid.UUID, user_id: uuid.UUID, device_id: uuid.UUID
    ) -> bool:
        """Handle a paging-queue callback for one due page.

        Returns:
            False if the ticket was closed in the meantime, True once sent.

        Raises:
            NotFoundError: If the ticket, user or device does not exist.
        """
        ticket = await self._tickets.get(ticket_id)
        if not ticket.is_open:
            logger.info("Ticket closed, dropping page", ticket_id=str(ticket_id))
            return False

        user = await self._users.get(user_id)
        device = next((d for d in user.devices if d.id == device_id), None)
        if device is None:
            raise NotFoundError(f"No such device {device_id} for user {user_id}")

        await self.send_page(ticket, user, device)
        logger.info(
            "Page delivered",
            ticket_id=str(ticket_id),
            user_id=str(user_id),
            device_type=device.type,
        )
        return True
