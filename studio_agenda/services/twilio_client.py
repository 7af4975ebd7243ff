"""Twilio client configuration for WhatsApp admin alerts."""

import logging
from twilio.rest import Client

from studio_agenda.core.config import Settings
from studio_agenda.core.domain_exceptions import ExternalSyncFailure

logger = logging.getLogger(__name__)


class WhatsAppClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Client | None = None

        if settings.admin_whatsapp_numbers and not (
            settings.twilio_account_sid and settings.twilio_auth_token
        ):
            logger.warning(
                "Twilio credentials not set. WhatsApp admin alerts will fail at runtime."
            )

    def _get_client(self) -> Client:
        if self._client is None:
            if not self.settings.twilio_account_sid or not self.settings.twilio_auth_token:
                raise ExternalSyncFailure("Twilio client is not configured.")
            self._client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._client

    def send(self, to: str, body: str) -> str:
        """Send a WhatsApp message via Twilio and return the message SID."""
        if not to.startswith("+"):
            raise ExternalSyncFailure("Phone number must be in E.164 format.")

        try:
            message = self._get_client().messages.create(
                from_=self.settings.twilio_whatsapp_from,
                to=f"whatsapp:{to}",
                body=body,
            )
        except ExternalSyncFailure:
            raise
        except Exception as exc:
            raise ExternalSyncFailure(f"WhatsApp message to {to} failed: {exc}") from exc

        logger.info("WhatsApp message sent to %s (SID: %s)", to, message.sid)
        return message.sid
