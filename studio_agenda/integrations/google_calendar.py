"""
Google Calendar sync for confirmed bookings.

Talks to the Calendar v3 REST API with a refresh-token grant. Every call
raises ExternalSyncFailure on error; callers decide whether that matters.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from studio_agenda.core.config import Settings
from studio_agenda.core.domain_exceptions import ExternalSyncFailure

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"

# Orange, matching how the studio colours public sessions.
PUBLIC_BOOKING_COLOR_ID = "6"


def build_event_body(fields: dict[str, Any], time_zone: str) -> dict[str, Any]:
    """Translate a booking snapshot into a Calendar event resource."""
    description_lines = [
        f"Client: {fields.get('client_name')}",
        f"Email: {fields.get('client_email') or 'not provided'}",
        f"Phone: {fields.get('client_phone') or 'not provided'}",
    ]
    if fields.get("notes"):
        description_lines.append(f"\nNotes: {fields['notes']}")

    booking_date = fields["booking_date"]
    return {
        "summary": f"{fields.get('service_type_name') or 'Session'} - {fields.get('client_name')}",
        "description": "\n".join(description_lines),
        "start": {
            "dateTime": f"{booking_date}T{fields['start_time']}:00",
            "timeZone": time_zone,
        },
        "end": {
            "dateTime": f"{booking_date}T{fields['end_time']}:00",
            "timeZone": time_zone,
        },
        "colorId": PUBLIC_BOOKING_COLOR_ID,
    }


class CalendarClient:
    """Thin Google Calendar client; disabled when credentials are missing."""

    def __init__(self, settings: Settings, http_client: httpx.Client | None = None):
        self.settings = settings
        self._http = http_client or httpx.Client(timeout=settings.side_effect_timeout_seconds)
        self._access_token: str | None = None
        self._token_expires_at = datetime.min.replace(tzinfo=timezone.utc)

    @property
    def enabled(self) -> bool:
        return self.settings.calendar_configured

    def _get_access_token(self) -> str:
        # Refresh a little early so a token never expires mid-request.
        if self._access_token and self._token_expires_at > datetime.now(timezone.utc) + timedelta(minutes=5):
            return self._access_token

        try:
            response = self._http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.settings.google_client_id,
                    "client_secret": self.settings.google_client_secret,
                    "refresh_token": self.settings.google_refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as exc:
            raise ExternalSyncFailure(f"Google token refresh failed: {exc}") from exc

        if response.status_code != 200:
            raise ExternalSyncFailure(f"Google token refresh failed: {response.text}")

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise ExternalSyncFailure("Google token refresh returned no access token.")

        self._access_token = access_token
        self._token_expires_at = datetime.now(timezone.utc) + timedelta(seconds=tokens.get("expires_in", 3600))
        logger.info("Google Calendar token refreshed")
        return access_token

    def _events_url(self, event_id: str | None = None) -> str:
        url = f"{GOOGLE_CALENDAR_API}/calendars/{self.settings.google_calendar_id}/events"
        return f"{url}/{event_id}" if event_id else url

    def _request(self, method: str, url: str, json: dict[str, Any] | None = None) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._get_access_token()}"}
        try:
            return self._http.request(method, url, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise ExternalSyncFailure(f"Google Calendar {method} failed: {exc}") from exc

    def create_event(self, fields: dict[str, Any]) -> str | None:
        """Create an event and return its id; None when sync is not configured."""
        if not self.enabled:
            logger.info("Google Calendar not configured, skipping event creation")
            return None

        response = self._request(
            "POST",
            self._events_url(),
            json=build_event_body(fields, self.settings.calendar_timezone),
        )
        if response.status_code not in (200, 201):
            raise ExternalSyncFailure(f"Google Calendar create failed: {response.text}")

        event_id = response.json().get("id")
        logger.info("Google Calendar event created: %s", event_id)
        return event_id

    def update_event(self, event_id: str, fields: dict[str, Any]) -> None:
        if not self.enabled or not event_id:
            logger.info("Google Calendar not configured or no event id, skipping update")
            return

        body = build_event_body(fields, self.settings.calendar_timezone)
        body.pop("colorId", None)
        response = self._request("PUT", self._events_url(event_id), json=body)
        if response.status_code != 200:
            raise ExternalSyncFailure(f"Google Calendar update failed: {response.text}")
        logger.info("Google Calendar event updated: %s", event_id)

    def delete_event(self, event_id: str) -> None:
        if not self.enabled or not event_id:
            logger.info("Google Calendar not configured or no event id, skipping delete")
            return

        response = self._request("DELETE", self._events_url(event_id))
        if response.status_code in (404, 410):
            # Already gone; nothing left to delete.
            logger.info("Google Calendar event already removed: %s", event_id)
            return
        if response.status_code not in (200, 204):
            raise ExternalSyncFailure(f"Google Calendar delete failed: {response.text}")
        logger.info("Google Calendar event deleted: %s", event_id)
