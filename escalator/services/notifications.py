"""Notification providers for the direct-send path.

Email goes out over SMTP; SMS and voice calls go through Twilio's REST API.
This module only hands a message to the provider; retries and delivery
tracking belong to the paging queue.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

import httpx

from escalator.config import settings
from escalator.core.errors import TransportError
from escalator.logging_config import get_logger
from escalator.models.ticket import Ticket
from escalator.models.user import Device, User

logger = get_logger(__name__)


class NotificationClient(Protocol):
    async def send_email(self, ticket: Ticket, user: User, device: Device) -> None: ...

    async def send_sms(self, ticket: Ticket, user: User, device: Device) -> None: ...

    async def send_voice_call(
        self, ticket: Ticket, user: User, device: Device
    ) -> None: ...


def build_email(ticket: Ticket, user: User, device: Device) -> EmailMessage:
    """Build the page email for one device."""
    message = EmailMessage()
    if settings.smtp_user:
        message["From"] = formataddr((settings.email_from_name, settings.smtp_user))
    message["To"] = formataddr((user.name, device.contact_information))
    message["Subject"] = f"[{ticket.group_name}] {ticket.title}"
    message.set_content(ticket.description or ticket.title)
    return message


def build_sms_body(ticket: Ticket) -> str:
    body = ticket.description or ticket.title
    return f"[{ticket.group_name}] {body}"


class ProviderNotificationClient:
    """Sends pages through SMTP and Twilio."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def _twilio_url(self, resource: str) -> str:
        return (
            f"{settings.twilio_api_base}/Accounts/"
            f"{settings.twilio_account_sid}/{resource}.json"
        )

    async def _twilio_post(self, resource: str, data: dict[str, str]) -> dict:
        if not settings.twilio_account_sid or not settings.twilio_auth_token:
            raise TransportError("Twilio credentials are not configured")

        try:
            async with httpx.AsyncClient(
                timeout=10.0, transport=self._transport
            ) as client:
                response = await client.post(
                    self._twilio_url(resource),
                    data=data,
                    auth=(settings.twilio_account_sid, settings.twilio_auth_token),
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Twilio unreachable: {e}") from e

        if response.status_code >= 300:
            raise TransportError(
                f"Twilio error: {response.status_code} {response.text}"
            )
        return response.json()

    async def send_email(self, ticket: Ticket, user: User, device: Device) -> None:
        message = build_email(ticket, user, device)

        def _send() -> None:
            with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port) as smtp:
                if settings.smtp_user:
                    smtp.login(settings.smtp_user, settings.smtp_password)
                smtp.send_message(message)

        try:
            await asyncio.to_thread(_send)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"Failed to send email: {e}") from e

        logger.info(
            "Page email sent",
            ticket_id=str(ticket.id),
            user_id=str(user.id),
            device_id=str(device.id),
        )

    async def send_sms(self, ticket: Ticket, user: User, device: Device) -> None:
        result = await self._twilio_post(
            "Messages",
            {
                "To": device.contact_information,
                "From": settings.twilio_from_phone,
                "Body": build_sms_body(ticket),
            },
        )
        logger.info(
            "Page SMS sent",
            ticket_id=str(ticket.id),
            user_id=str(user.id),
            sid=result.get("sid"),
        )

    async def send_voice_call(self, ticket: Ticket, user: User, device: Device) -> None:
        result = await self._twilio_post(
            "Calls",
            {
                "To": device.contact_information,
                "From": settings.twilio_from_phone,
                "Url": settings.twilio_voice_url,
            },
        )
        logger.info(
            "Page call placed",
            ticket_id=str(ticket.id),
            user_id=str(user.id),
            sid=result.get("sid"),
        )
