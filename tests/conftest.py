from datetime import date, time

import pytest
from sqlalchemy.orm import Session, sessionmaker

from studio_agenda.core.config import Settings
from studio_agenda.core.domain_exceptions import ExternalSyncFailure
from studio_agenda.db.init_db import init_db
from studio_agenda.db.session import build_engine
from studio_agenda.services import catalog_service
from studio_agenda.services.notification_service import Notifier
from studio_agenda.services.outbox import SideEffectHandlers

MONDAY = date(2025, 6, 9)
TUESDAY = date(2025, 6, 10)
ADMIN_EMAIL = "studio@example.com"


class FakeCalendar:
    """Records calls; set ``fail`` to a set of operation names to make them raise."""

    enabled = True

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self.on_create = None
        self.on_delete = None
        self._counter = 0

    def create_event(self, fields):
        self.calls.append(("create", fields))
        if self.on_create is not None:
            self.on_create(fields)
        if "create" in self.fail:
            raise ExternalSyncFailure("calendar create timed out")
        self._counter += 1
        return f"evt-{self._counter}"

    def update_event(self, event_id, fields):
        self.calls.append(("update", event_id, fields))
        if "update" in self.fail:
            raise ExternalSyncFailure("calendar update failed")

    def delete_event(self, event_id):
        self.calls.append(("delete", event_id))
        if self.on_delete is not None:
            self.on_delete(event_id)
        if "delete" in self.fail:
            raise ExternalSyncFailure("calendar delete failed")

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeEmailClient:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    def send(self, to, subject, html, text=None):
        if self.fail:
            raise ExternalSyncFailure(f"email to {to} bounced")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"email-{len(self.sent)}"

    def subjects_for(self, address: str) -> list[str]:
        return [message["subject"] for message in self.sent if message["to"] == address]


class FakeWhatsAppClient:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def send(self, to, body):
        if self.fail:
            raise ExternalSyncFailure("whatsapp unavailable")
        self.sent.append((to, body))
        return f"SM{len(self.sent)}"


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'agenda.db'}")
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, class_=Session)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        admin_notification_emails=(ADMIN_EMAIL,),
        outbox_max_attempts=3,
        start_scheduler=False,
    )


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def whatsapp_client():
    return FakeWhatsAppClient()


@pytest.fixture
def notifier(test_settings, email_client, whatsapp_client):
    return Notifier(test_settings, email_client=email_client, whatsapp_client=whatsapp_client)


@pytest.fixture
def handlers(calendar, notifier):
    return SideEffectHandlers(calendar=calendar, notifier=notifier, max_attempts=3, dispatch_inline=True)


@pytest.fixture
def portrait(db):
    """A 60 minute service type."""
    return catalog_service.create_service_type(db, name="Portrait Session", duration_minutes=60)


@pytest.fixture
def headshot(db):
    return catalog_service.create_service_type(db, name="Headshot", duration_minutes=60, display_order=1)


@pytest.fixture
def monday_hours(db):
    """Monday 09:00-12:00, every other day closed."""
    for day in range(7):
        catalog_service.upsert_working_hours(db, day, is_working_day=False)
    return catalog_service.upsert_working_hours(
        db,
        1,
        is_working_day=True,
        open_time=time(9, 0),
        close_time=time(12, 0),
    )


def booking_fields(service_type_id: int, start: str = "10:00", booking_date: date = MONDAY, **overrides):
    fields = {
        "service_type_id": service_type_id,
        "client_name": "Ana Pereira",
        "client_email": "ana@example.com",
        "client_phone": "+59899123456",
        "booking_date": booking_date,
        "start_time": start,
        "notes": None,
    }
    fields.update(overrides)
    return fields
