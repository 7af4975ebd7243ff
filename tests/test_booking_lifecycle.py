from datetime import date, time

import pytest
from sqlalchemy import select

from studio_agenda.core.domain_exceptions import (
    InvalidTransition,
    NotFound,
    SlotUnavailable,
    ValidationError,
)
from studio_agenda.db.models import CANCELLED, CONFIRMED, PENDING, REJECTED, Booking, SideEffect
from studio_agenda.services import booking_service, catalog_service, outbox

from conftest import ADMIN_EMAIL, MONDAY, TUESDAY, booking_fields

CLIENT_EMAIL = "ana@example.com"
SUNDAY = date(2025, 6, 8)


def create(db, handlers, service_type, start="10:00", **overrides):
    return booking_service.create_booking(db, handlers, **booking_fields(service_type.id, start, **overrides)).booking


def open_monday_at(db, open_time):
    catalog_service.upsert_working_hours(db, 1, is_working_day=True, open_time=open_time, close_time=time(18, 0))


# -------------------------------------------------------------------
# Creation
# -------------------------------------------------------------------


def test_create_stores_pending_booking_with_computed_end(db, handlers, portrait, email_client):
    result = booking_service.create_booking(
        db,
        handlers,
        **booking_fields(portrait.id, "10:00", client_email="  Ana@Example.COM ", notes=" window light "),
    )

    booking = result.booking
    assert booking.status == PENDING
    assert booking.start_time == time(10, 0)
    assert booking.end_time == time(11, 0)
    assert booking.client_email == CLIENT_EMAIL
    assert booking.notes == "window light"
    assert result.warnings == []

    assert email_client.subjects_for(ADMIN_EMAIL) == ["New booking request: Portrait Session on June 9, 2025"]
    assert email_client.subjects_for(CLIENT_EMAIL) == ["We received your Portrait Session request"]


def test_create_accepts_seconds_in_start_time(db, handlers, portrait):
    booking = create(db, handlers, portrait, "11:00:00")

    assert booking.start_time == time(11, 0)
    assert booking.end_time == time(12, 0)


@pytest.mark.parametrize("missing", ["client_name", "client_email", "client_phone", "start_time", "booking_date"])
def test_create_requires_every_contact_and_schedule_field(db, handlers, portrait, missing):
    fields = booking_fields(portrait.id)
    fields[missing] = "  " if missing.startswith("client_") else None

    with pytest.raises(ValidationError) as exc_info:
        booking_service.create_booking(db, handlers, **fields)

    assert missing in exc_info.value.message
    assert db.scalar(select(Booking.id)) is None


@pytest.mark.parametrize("email", ["ana", "ana@example", "ana @example.com", "@example.com"])
def test_create_rejects_malformed_email(db, handlers, portrait, email):
    with pytest.raises(ValidationError):
        create(db, handlers, portrait, client_email=email)


def test_create_rejects_booking_that_runs_past_midnight(db, handlers, portrait):
    with pytest.raises(ValidationError):
        create(db, handlers, portrait, "23:30")


def test_create_for_unknown_type_is_not_found(db, handlers):
    with pytest.raises(NotFound):
        booking_service.create_booking(db, handlers, **booking_fields(4242))


def test_second_booking_for_same_slot_is_refused(db, handlers, portrait):
    create(db, handlers, portrait, "10:00")

    with pytest.raises(SlotUnavailable):
        create(db, handlers, portrait, "10:00", client_name="Bruno", client_email="bruno@example.com")


def test_overlapping_start_is_refused(db, handlers, portrait):
    create(db, handlers, portrait, "10:00")
    # Shifting opening time moves the grid onto 10:30, inside the 10:00-11:00 booking.
    open_monday_at(db, time(9, 30))

    with pytest.raises(SlotUnavailable):
        create(db, handlers, portrait, "10:30", client_name="Bruno")

    assert create(db, handlers, portrait, "11:30", client_name="Bruno").status == PENDING


def test_create_on_blocked_date_is_refused(db, handlers, portrait):
    catalog_service.add_blocked_date(db, MONDAY, reason="Holiday")

    with pytest.raises(SlotUnavailable, match="closed on that date"):
        create(db, handlers, portrait, "10:00")

    assert db.scalar(select(Booking.id)) is None


def test_create_inside_time_block_is_refused(db, handlers, portrait):
    catalog_service.add_blocked_time_slot(db, MONDAY, time(9, 0), time(12, 0), reason="Equipment check")

    with pytest.raises(SlotUnavailable):
        create(db, handlers, portrait, "10:00")

    assert create(db, handlers, portrait, "12:00").status == PENDING


@pytest.mark.parametrize("start", ["03:00", "07:00", "18:00", "17:30"])
def test_create_outside_working_hours_is_refused(db, handlers, portrait, start):
    with pytest.raises(SlotUnavailable):
        create(db, handlers, portrait, start)


def test_create_on_non_working_day_is_refused(db, handlers, portrait):
    with pytest.raises(SlotUnavailable, match="does not take bookings"):
        create(db, handlers, portrait, "10:00", booking_date=SUNDAY)


@pytest.mark.parametrize("start", ["10:15", "10:30", "09:05"])
def test_create_off_the_slot_grid_is_refused(db, handlers, portrait, start):
    with pytest.raises(SlotUnavailable):
        create(db, handlers, portrait, start)

    assert db.scalar(select(Booking.id)) is None


def test_refused_create_releases_the_write_lock(db, handlers, session_factory, portrait):
    with pytest.raises(SlotUnavailable):
        create(db, handlers, portrait, "10:15")

    with session_factory() as other:
        booking_service.create_booking(other, handlers, **booking_fields(portrait.id, "10:00"))


def test_same_time_for_another_type_is_accepted(db, handlers, portrait, headshot):
    create(db, handlers, portrait, "10:00")

    other = create(db, handlers, headshot, "10:00")

    assert other.status == PENDING


def test_slot_freed_by_rejection_can_be_booked_again(db, handlers, portrait):
    first = create(db, handlers, portrait, "10:00")
    booking_service.reject_booking(db, handlers, first.id)

    again = create(db, handlers, portrait, "10:00", client_name="Bruno")

    assert again.id != first.id
    assert again.status == PENDING


def test_notification_failure_does_not_undo_creation(db, handlers, portrait, email_client):
    email_client.fail = True

    result = booking_service.create_booking(db, handlers, **booking_fields(portrait.id))

    assert result.booking.status == PENDING
    assert len(result.warnings) == 2
    assert all("queued for retry" in warning for warning in result.warnings)
    queued = db.scalars(select(SideEffect).where(SideEffect.status == outbox.PENDING)).all()
    assert len(queued) == 2


# -------------------------------------------------------------------
# Confirm / reject / cancel
# -------------------------------------------------------------------


def test_confirm_syncs_calendar_and_notifies_both_sides(db, handlers, portrait, calendar, email_client):
    booking = create(db, handlers, portrait)

    result = booking_service.confirm_booking(db, handlers, booking.id, internal_notes="bring backdrop")

    confirmed = result.booking
    assert confirmed.status == CONFIRMED
    assert confirmed.confirmed_at is not None
    assert confirmed.internal_notes == "bring backdrop"
    assert confirmed.calendar_event_id == "evt-1"
    assert result.warnings == []

    operation, fields = calendar.calls[0]
    assert operation == "create"
    assert fields["start_time"] == "10:00"
    assert fields["service_type_name"] == "Portrait Session"

    assert "Booking confirmed: Ana Pereira on June 9, 2025" in email_client.subjects_for(ADMIN_EMAIL)
    assert "Your Portrait Session is confirmed" in email_client.subjects_for(CLIENT_EMAIL)


def test_calendar_outage_leaves_booking_confirmed_with_warning(db, handlers, session_factory, portrait, calendar):
    booking = create(db, handlers, portrait)
    calendar.fail = {"create"}

    result = booking_service.confirm_booking(db, handlers, booking.id)

    assert result.booking.status == CONFIRMED
    assert result.booking.calendar_event_id is None
    assert any(warning.startswith("calendar create") for warning in result.warnings)

    entry = db.scalar(select(SideEffect).where(SideEffect.kind == outbox.CALENDAR_CREATE))
    assert entry.status == outbox.PENDING
    assert entry.attempts == 1
    assert entry.last_error == "calendar create timed out"

    # The worker picks it up once the calendar is back.
    calendar.fail = set()
    outbox.drain_outbox(session_factory, handlers)

    db.expire_all()
    assert db.get(Booking, booking.id).calendar_event_id == "evt-1"


def test_reconfirming_is_a_no_op(db, handlers, portrait, calendar, email_client):
    booking = create(db, handlers, portrait)
    booking_service.confirm_booking(db, handlers, booking.id)
    sent_before = len(email_client.sent)

    result = booking_service.confirm_booking(db, handlers, booking.id)

    assert result.booking.status == CONFIRMED
    assert result.warnings == []
    assert calendar.operations() == ["create"]
    assert len(email_client.sent) == sent_before


def test_reject_records_reason_and_tells_only_the_client(db, handlers, portrait, email_client):
    booking = create(db, handlers, portrait)
    email_client.sent.clear()

    result = booking_service.reject_booking(db, handlers, booking.id, reason=" Studio closed for the holiday ")

    assert result.booking.status == REJECTED
    assert result.booking.rejected_reason == "Studio closed for the holiday"
    assert result.booking.rejected_at is not None
    assert [message["to"] for message in email_client.sent] == [CLIENT_EMAIL]
    assert "Studio closed for the holiday" in email_client.sent[0]["text"]


def test_cancel_is_silent(db, handlers, portrait, calendar, email_client):
    booking = create(db, handlers, portrait)
    booking_service.confirm_booking(db, handlers, booking.id)
    calls_before, sent_before = len(calendar.calls), len(email_client.sent)

    result = booking_service.cancel_booking(db, handlers, booking.id)

    assert result.booking.status == CANCELLED
    assert result.booking.cancelled_at is not None
    assert len(calendar.calls) == calls_before
    assert len(email_client.sent) == sent_before


@pytest.mark.parametrize(
    "setup,action",
    [
        ("confirm", "reject"),
        ("reject", "confirm"),
        ("reject", "cancel"),
        ("cancel", "confirm"),
        ("cancel", "cancel"),
        ("cancel", "reject"),
    ],
)
def test_transitions_out_of_terminal_or_confirmed_states_are_refused(db, handlers, portrait, setup, action):
    actions = {
        "confirm": booking_service.confirm_booking,
        "reject": booking_service.reject_booking,
        "cancel": booking_service.cancel_booking,
    }
    booking = create(db, handlers, portrait)
    actions[setup](db, handlers, booking.id)
    status_before = db.get(Booking, booking.id).status

    with pytest.raises(InvalidTransition):
        actions[action](db, handlers, booking.id)

    db.rollback()
    assert db.get(Booking, booking.id).status == status_before


@pytest.mark.parametrize("action", ["confirm_booking", "reject_booking", "cancel_booking", "delete_booking"])
def test_actions_on_missing_booking_are_not_found(db, handlers, action):
    with pytest.raises(NotFound):
        getattr(booking_service, action)(db, handlers, 777)


# -------------------------------------------------------------------
# Update
# -------------------------------------------------------------------


def test_moving_a_synced_booking_pushes_calendar_update(db, handlers, portrait, calendar):
    booking = create(db, handlers, portrait, "09:00")
    booking_service.confirm_booking(db, handlers, booking.id)

    result = booking_service.update_booking(db, handlers, booking.id, {"start_time": "11:00"})

    assert result.booking.start_time == time(11, 0)
    assert result.booking.end_time == time(12, 0)
    assert result.booking.status == CONFIRMED
    operation, event_id, fields = calendar.calls[-1]
    assert (operation, event_id) == ("update", "evt-1")
    assert (fields["start_time"], fields["end_time"]) == ("11:00", "12:00")


def test_update_without_calendar_event_does_not_touch_calendar(db, handlers, portrait, calendar):
    booking = create(db, handlers, portrait)

    result = booking_service.update_booking(db, handlers, booking.id, {"client_phone": "+59899000000"})

    assert result.booking.client_phone == "+59899000000"
    assert calendar.calls == []


def test_update_can_move_within_its_own_slot(db, handlers, portrait):
    booking = create(db, handlers, portrait, "10:00")
    open_monday_at(db, time(9, 30))

    result = booking_service.update_booking(db, handlers, booking.id, {"start_time": "10:30"})

    assert result.booking.start_time == time(10, 30)
    assert result.booking.end_time == time(11, 30)


def test_update_into_another_booking_is_refused(db, handlers, portrait):
    create(db, handlers, portrait, "09:00")
    later = create(db, handlers, portrait, "11:00", client_name="Bruno")

    with pytest.raises(SlotUnavailable):
        booking_service.update_booking(db, handlers, later.id, {"start_time": "09:00"})


def test_update_onto_blocked_date_is_refused_and_leaves_booking_untouched(db, handlers, portrait):
    booking = create(db, handlers, portrait, "10:00")
    catalog_service.add_blocked_date(db, TUESDAY)

    with pytest.raises(SlotUnavailable):
        booking_service.update_booking(
            db,
            handlers,
            booking.id,
            {"client_name": "Ana Souza", "booking_date": TUESDAY.isoformat()},
        )

    stored = booking_service.get_booking(db, booking.id)
    assert stored.client_name == "Ana Pereira"
    assert stored.booking_date == MONDAY


def test_update_off_the_slot_grid_is_refused(db, handlers, portrait):
    booking = create(db, handlers, portrait, "10:00")

    with pytest.raises(SlotUnavailable):
        booking_service.update_booking(db, handlers, booking.id, {"start_time": "10:45"})


def test_invalid_field_leaves_earlier_fields_unapplied(db, handlers, portrait):
    booking = create(db, handlers, portrait)

    with pytest.raises(ValidationError):
        booking_service.update_booking(
            db,
            handlers,
            booking.id,
            {"client_name": "Ana Souza", "client_email": "not-an-email"},
        )

    assert booking.client_name == "Ana Pereira"
    assert db.is_modified(booking) is False


def test_update_of_inactive_booking_skips_conflict_check(db, handlers, portrait):
    create(db, handlers, portrait, "09:00")
    old = create(db, handlers, portrait, "11:00", client_name="Bruno")
    booking_service.cancel_booking(db, handlers, old.id)

    result = booking_service.update_booking(db, handlers, old.id, {"booking_date": TUESDAY.isoformat(), "start_time": "09:00"})

    assert result.booking.booking_date == TUESDAY
    assert result.booking.status == CANCELLED


def test_update_rejects_fields_that_are_not_editable(db, handlers, portrait):
    booking = create(db, handlers, portrait)

    with pytest.raises(ValidationError):
        booking_service.update_booking(db, handlers, booking.id, {"status": CONFIRMED})


def test_update_rejects_invalid_email(db, handlers, portrait):
    booking = create(db, handlers, portrait)

    with pytest.raises(ValidationError):
        booking_service.update_booking(db, handlers, booking.id, {"client_email": "not-an-email"})


# -------------------------------------------------------------------
# Delete
# -------------------------------------------------------------------


def test_delete_removes_calendar_event_before_the_row(db, handlers, session_factory, portrait, calendar, email_client):
    booking = create(db, handlers, portrait)
    booking_service.confirm_booking(db, handlers, booking.id)
    booking_id = booking.id
    seen_rows = []

    def check_row_still_there(event_id):
        with session_factory() as other:
            seen_rows.append(other.get(Booking, booking_id) is not None)

    calendar.on_delete = check_row_still_there

    result = booking_service.delete_booking(db, handlers, booking_id)

    assert ("delete", "evt-1") in calendar.calls
    assert seen_rows == [True]
    assert result.warnings == []
    assert result.snapshot["client_email"] == CLIENT_EMAIL
    assert result.snapshot["status"] == CONFIRMED

    with pytest.raises(NotFound):
        booking_service.get_booking(db, booking_id)

    cancellation = [message for message in email_client.sent if message["subject"] == "Your Portrait Session was cancelled"]
    assert len(cancellation) == 1
    assert cancellation[0]["to"] == CLIENT_EMAIL
    assert booking_service.ADMIN_CANCELLATION_REASON in cancellation[0]["text"]


def test_deleting_a_pending_booking_sends_nothing(db, handlers, portrait, calendar, email_client):
    booking = create(db, handlers, portrait)
    sent_before = len(email_client.sent)

    result = booking_service.delete_booking(db, handlers, booking.id)

    assert result.warnings == []
    assert calendar.calls == []
    assert len(email_client.sent) == sent_before
    assert db.scalar(select(Booking.id).where(Booking.id == booking.id)) is None


def test_calendar_delete_failure_still_deletes_and_queues_retry(db, handlers, portrait, calendar):
    booking = create(db, handlers, portrait)
    booking_service.confirm_booking(db, handlers, booking.id)
    calendar.fail = {"delete"}

    result = booking_service.delete_booking(db, handlers, booking.id)

    assert any("calendar delete" in warning for warning in result.warnings)
    assert db.scalar(select(Booking.id).where(Booking.id == booking.id)) is None

    retry = db.scalar(select(SideEffect).where(SideEffect.kind == outbox.CALENDAR_DELETE))
    assert retry.status == outbox.PENDING
    assert retry.payload["calendar_event_id"] == "evt-1"


def test_deleted_slot_becomes_bookable(db, handlers, portrait):
    booking = create(db, handlers, portrait)
    booking_service.delete_booking(db, handlers, booking.id)

    replacement = create(db, handlers, portrait, client_name="Bruno")

    assert replacement.status == PENDING


def test_list_bookings_filters_by_status_and_date(db, handlers, portrait):
    first = create(db, handlers, portrait, "09:00")
    create(db, handlers, portrait, "10:00")
    create(db, handlers, portrait, "10:00", booking_date=TUESDAY)
    booking_service.confirm_booking(db, handlers, first.id)

    assert [b.id for b in booking_service.list_bookings(db, status="CONFIRMED")] == [first.id]
    assert len(booking_service.list_bookings(db, date_from=MONDAY, date_to=MONDAY)) == 2
    with pytest.raises(ValidationError):
        booking_service.list_bookings(db, status="archived")
