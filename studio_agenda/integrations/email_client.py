"""Transactional email through Resend."""

import logging

import resend

from studio_agenda.core.config import Settings
from studio_agenda.core.domain_exceptions import ExternalSyncFailure

logger = logging.getLogger(__name__)


class EmailClient:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return bool(self.settings.resend_api_key)

    def send(self, to: str, subject: str, html: str, text: str | None = None) -> str | None:
        """Send one email and return the provider id; None when email is not configured."""
        if not self.enabled:
            logger.warning("RESEND_API_KEY not set. Skipping email to %s (%s).", to, subject)
            return None

        resend.api_key = self.settings.resend_api_key
        params: dict = {
            "from": self.settings.email_from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text

        try:
            response = resend.Emails.send(params)
        except Exception as exc:
            raise ExternalSyncFailure(f"Email to {to} failed: {exc}") from exc

        email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        logger.info("Email sent to %s (id: %s)", to, email_id)
        return email_id
