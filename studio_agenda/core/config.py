"""Runtime settings loaded from the environment."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables from .env (for local development)
load_dotenv()


def _split_csv(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _as_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./studio_agenda.db"

    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_refresh_token: str | None = None
    google_calendar_id: str = "primary"
    calendar_timezone: str = "America/Montevideo"

    resend_api_key: str | None = None
    email_from_address: str = "Studio Agenda <agenda@example.com>"

    admin_notification_emails: tuple[str, ...] = field(default_factory=tuple)
    admin_whatsapp_numbers: tuple[str, ...] = field(default_factory=tuple)

    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_whatsapp_from: str = "whatsapp:+14155238886"  # Twilio Sandbox default

    side_effect_timeout_seconds: float = 10.0
    outbox_poll_seconds: int = 60
    outbox_max_attempts: int = 5
    outbox_stale_after_seconds: int = 600
    dispatch_inline: bool = True
    start_scheduler: bool = True

    @property
    def calendar_configured(self) -> bool:
        return bool(
            self.google_refresh_token
            and self.google_client_id
            and self.google_client_secret
        )


def load_settings() -> Settings:
    """Build settings from the current process environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./studio_agenda.db"),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        google_refresh_token=os.getenv("GOOGLE_REFRESH_TOKEN"),
        google_calendar_id=os.getenv("GOOGLE_CALENDAR_ID", "primary"),
        calendar_timezone=os.getenv("CALENDAR_TIMEZONE", "America/Montevideo"),
        resend_api_key=os.getenv("RESEND_API_KEY"),
        email_from_address=os.getenv(
            "EMAIL_FROM_ADDRESS",
            "Studio Agenda <agenda@example.com>",
        ),
        admin_notification_emails=_split_csv(os.getenv("ADMIN_NOTIFICATION_EMAILS")),
        admin_whatsapp_numbers=_split_csv(os.getenv("ADMIN_WHATSAPP_NUMBERS")),
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
        twilio_whatsapp_from=os.getenv("TWILIO_WHATSAPP_FROM", "whatsapp:+14155238886"),
        side_effect_timeout_seconds=float(os.getenv("SIDE_EFFECT_TIMEOUT_SECONDS", "10")),
        outbox_poll_seconds=int(os.getenv("OUTBOX_POLL_SECONDS", "60")),
        outbox_max_attempts=int(os.getenv("OUTBOX_MAX_ATTEMPTS", "5")),
        outbox_stale_after_seconds=int(os.getenv("OUTBOX_STALE_AFTER_SECONDS", "600")),
        dispatch_inline=_as_bool(os.getenv("DISPATCH_INLINE"), True),
        start_scheduler=_as_bool(os.getenv("START_SCHEDULER"), True),
    )


settings = load_settings()
