"""Notification dispatch to admins and clients.

Admin alerts go to everyone subscribed to the event kind (email, and
WhatsApp when numbers are configured). Client messages go to the booking's
email address.

The interface is two steps: `resolve` expands a (kind, role) into recipients
when a transition is committed, and `deliver` sends to one of them when its
outbox entry runs, so a retry never repeats a delivery that succeeded.
"""

import logging
from dataclasses import dataclass
from typing import Any

from studio_agenda.core.config import Settings
from studio_agenda.integrations.email_client import EmailClient
from studio_agenda.services import email_templates
from studio_agenda.services.twilio_client import WhatsAppClient

logger = logging.getLogger(__name__)

ADMIN = "admin"
CLIENT = "client"

EMAIL = "email"
WHATSAPP = "whatsapp"

# Which notification kinds admins are subscribed to.
ADMIN_SUBSCRIPTIONS = frozenset({"booking_pending", "booking_confirmed"})


@dataclass(frozen=True)
class Recipient:
    role: str
    channel: str
    address: str


class Notifier:
    def __init__(
        self,
        settings: Settings,
        email_client: EmailClient | None = None,
        whatsapp_client: WhatsAppClient | None = None,
    ):
        self.settings = settings
        self.email_client = email_client or EmailClient(settings)
        self.whatsapp_client = whatsapp_client or WhatsAppClient(settings)

    def subscribers(self, kind: str) -> list[Recipient]:
        if kind not in ADMIN_SUBSCRIPTIONS:
            return []
        recipients = [Recipient(ADMIN, EMAIL, address) for address in self.settings.admin_notification_emails]
        recipients += [Recipient(ADMIN, WHATSAPP, number) for number in self.settings.admin_whatsapp_numbers]
        return recipients

    def resolve(self, kind: str, recipient_role: str, payload: dict[str, Any]) -> list[Recipient]:
        if recipient_role == ADMIN:
            recipients = self.subscribers(kind)
            if not recipients:
                logger.warning("No admin subscribers for %s; notification dropped.", kind)
            return recipients

        if recipient_role == CLIENT:
            address = payload.get("client_email")
            if not address:
                logger.warning("Booking %s has no client email; %s not sent.", payload.get("booking_id"), kind)
                return []
            return [Recipient(CLIENT, EMAIL, address)]

        raise ValueError(f"Unknown recipient role {recipient_role!r}.")

    def deliver(self, kind: str, recipient: Recipient, payload: dict[str, Any]) -> None:
        """Send one rendered message. Raises ExternalSyncFailure on provider errors."""
        message = email_templates.render(kind, recipient.role, payload)
        if recipient.channel == EMAIL:
            self.email_client.send(
                to=recipient.address,
                subject=message.subject,
                html=message.html,
                text=message.text,
            )
        elif recipient.channel == WHATSAPP:
            self.whatsapp_client.send(to=recipient.address, body=message.text)
        else:
            raise ValueError(f"Unknown channel {recipient.channel!r}.")
