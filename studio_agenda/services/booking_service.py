"""Booking lifecycle: create, confirm, reject, update, cancel, delete.

Each transition commits the booking row together with its outbox entries,
then (optionally) runs those entries. Calendar and notification failures
never undo a transition; they come back as warnings.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studio_agenda.core.domain_exceptions import ExternalSyncFailure, SlotUnavailable, ValidationError
from studio_agenda.db.models import (
    ACTIVE_STATUSES,
    BOOKING_STATUSES,
    CANCELLED,
    CONFIRMED,
    PENDING,
    REJECTED,
    Booking,
    ServiceType,
    SideEffect,
)
from studio_agenda.scheduling import TimeInterval, add_minutes, parse_time
from studio_agenda.services import availability_service, booking_repository, catalog_service, outbox
from studio_agenda.services.booking_repository import SLOT_TAKEN_MESSAGE
from studio_agenda.services.notification_service import ADMIN, CLIENT
from studio_agenda.services.outbox import SideEffectHandlers

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
REQUIRED_CREATE_FIELDS = (
    "service_type_id",
    "client_name",
    "client_email",
    "client_phone",
    "booking_date",
    "start_time",
)
EDITABLE_FIELDS = frozenset(
    {
        "client_name",
        "client_email",
        "client_phone",
        "booking_date",
        "start_time",
        "notes",
        "internal_notes",
    }
)
ADMIN_CANCELLATION_REASON = "The booking was cancelled by the studio."

ALLOWED_TRANSITIONS = {
    PENDING: {CONFIRMED, REJECTED, CANCELLED},
    CONFIRMED: {CANCELLED},
    REJECTED: set(),
    CANCELLED: set(),
}


@dataclass
class TransitionResult:
    booking: Booking | None
    warnings: list[str] = field(default_factory=list)
    snapshot: dict[str, Any] | None = None


def _allowed_from(target_status: str) -> tuple[str, ...]:
    return tuple(status for status, targets in ALLOWED_TRANSITIONS.items() if target_status in targets)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _validate_email(email: str) -> str:
    normalized = email.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError("The email address is not valid.")
    return normalized


def _coerce_date(value: date | str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD.") from None


def _coerce_time(value: time | str) -> time:
    try:
        return parse_time(value)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None


def _end_time(start_time: time, duration_minutes: int) -> time:
    try:
        return add_minutes(start_time, duration_minutes)
    except ValueError:
        raise ValidationError("The booking would run past midnight.") from None


def _reserve_slot(
    db: Session,
    service_type: ServiceType,
    booking_date: date,
    interval: TimeInterval,
    exclude_booking_id: int | None = None,
) -> None:
    """Take the per-type write lock, then re-run availability for the interval.

    The lock is held until the caller commits; a refusal rolls it back.
    """
    booking_repository.lock_service_type(db, service_type.id)
    try:
        availability_service.ensure_bookable(
            db,
            service_type,
            booking_date,
            interval,
            exclude_booking_id=exclude_booking_id,
        )
    except SlotUnavailable:
        db.rollback()
        raise


def _commit_and_dispatch(
    db: Session,
    booking: Booking | None,
    entries: list[SideEffect],
    handlers: SideEffectHandlers,
    warnings: list[str] | None = None,
) -> TransitionResult:
    booking_id = booking.id if booking is not None else None
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlotUnavailable(SLOT_TAKEN_MESSAGE) from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    warnings = list(warnings or [])
    if handlers.dispatch_inline and entries:
        warnings += outbox.dispatch(db, entries, handlers)

    if booking_id is None:
        return TransitionResult(booking=None, warnings=warnings)

    # Calendar sync may have stored an event id, or an admin deleted the row.
    current = booking_repository.find_booking(db, booking_id)
    if current is None:
        logger.info("Booking %s was deleted while its side effects ran.", booking_id)
    return TransitionResult(booking=current, warnings=warnings)


# -------------------------------------------------------------------
# Queries
# -------------------------------------------------------------------


def get_booking(db: Session, booking_id: int) -> Booking:
    return booking_repository.get_booking(db, booking_id)


def list_bookings(
    db: Session,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Booking]:
    if status is not None:
        status = status.lower()
        if status not in BOOKING_STATUSES:
            raise ValidationError(f"Unknown status {status!r}.")
    return booking_repository.list_bookings(db, status=status, date_from=date_from, date_to=date_to)


# -------------------------------------------------------------------
# Transitions
# -------------------------------------------------------------------


def create_booking(
    db: Session,
    handlers: SideEffectHandlers,
    *,
    service_type_id: int | None,
    client_name: str | None,
    client_email: str | None,
    client_phone: str | None,
    booking_date: date | str | None,
    start_time: time | str | None,
    notes: str | None = None,
) -> TransitionResult:
    """Create a pending booking when the requested interval is still free."""
    provided = {
        "service_type_id": service_type_id,
        "client_name": _clean(client_name) if isinstance(client_name, str) else client_name,
        "client_email": _clean(client_email) if isinstance(client_email, str) else client_email,
        "client_phone": _clean(client_phone) if isinstance(client_phone, str) else client_phone,
        "booking_date": booking_date,
        "start_time": start_time,
    }
    missing = [name for name in REQUIRED_CREATE_FIELDS if provided[name] in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

    email = _validate_email(provided["client_email"])
    requested_date = _coerce_date(booking_date)
    requested_start = _coerce_time(start_time)

    service_type = catalog_service.get_service_type(db, service_type_id)
    requested_end = _end_time(requested_start, service_type.duration_minutes)

    _reserve_slot(db, service_type, requested_date, TimeInterval(requested_start, requested_end))

    booking = booking_repository.insert_booking(
        db,
        Booking(
            service_type_id=service_type.id,
            client_name=provided["client_name"],
            client_email=email,
            client_phone=provided["client_phone"],
            booking_date=requested_date,
            start_time=requested_start,
            end_time=requested_end,
            notes=_clean(notes),
            status=PENDING,
        ),
    )
    booking.service_type = service_type
    booking_id = booking.id

    snapshot = outbox.booking_snapshot(booking)
    entries = outbox.enqueue_notification(db, handlers.notifier, "booking_pending", ADMIN, snapshot)
    entries += outbox.enqueue_notification(db, handlers.notifier, "booking_requested", CLIENT, snapshot)

    result = _commit_and_dispatch(db, booking, entries, handlers)
    logger.info(
        "Booking created",
        extra={
            "booking_id": booking_id,
            "service_type_id": service_type_id,
        },
    )
    return result


def confirm_booking(
    db: Session,
    handlers: SideEffectHandlers,
    booking_id: int,
    internal_notes: str | None = None,
) -> TransitionResult:
    """pending -> confirmed; re-confirming a confirmed booking is a no-op."""
    current = booking_repository.get_booking(db, booking_id)
    if current.status == CONFIRMED:
        return TransitionResult(booking=current)

    values: dict[str, Any] = {"status": CONFIRMED, "confirmed_at": _now()}
    if internal_notes is not None:
        values["internal_notes"] = _clean(internal_notes)

    booking = booking_repository.transition_status(db, booking_id, _allowed_from(CONFIRMED), values)

    snapshot = outbox.booking_snapshot(booking)
    entries = [outbox.enqueue(db, outbox.CALENDAR_CREATE, booking.id, snapshot)]
    entries += outbox.enqueue_notification(db, handlers.notifier, "booking_confirmed", ADMIN, snapshot)
    entries += outbox.enqueue_notification(db, handlers.notifier, "booking_confirmed", CLIENT, snapshot)

    result = _commit_and_dispatch(db, booking, entries, handlers)
    logger.info("Booking confirmed", extra={"booking_id": booking_id})
    return result


def reject_booking(
    db: Session,
    handlers: SideEffectHandlers,
    booking_id: int,
    reason: str | None = None,
) -> TransitionResult:
    """pending -> rejected. Nothing was synced to the calendar, so nothing to undo."""
    booking = booking_repository.transition_status(
        db,
        booking_id,
        _allowed_from(REJECTED),
        {"status": REJECTED, "rejected_at": _now(), "rejected_reason": _clean(reason)},
    )

    snapshot = outbox.booking_snapshot(booking)
    entries = outbox.enqueue_notification(
        db,
        handlers.notifier,
        "booking_rejected",
        CLIENT,
        snapshot,
        reason=booking.rejected_reason,
    )

    result = _commit_and_dispatch(db, booking, entries, handlers)
    logger.info("Booking rejected", extra={"booking_id": booking_id})
    return result


def cancel_booking(db: Session, handlers: SideEffectHandlers, booking_id: int) -> TransitionResult:
    """pending|confirmed -> cancelled. Internal bookkeeping only; no messages."""
    booking = booking_repository.transition_status(
        db,
        booking_id,
        _allowed_from(CANCELLED),
        {"status": CANCELLED, "cancelled_at": _now()},
    )
    result = _commit_and_dispatch(db, booking, [], handlers)
    logger.info("Booking cancelled", extra={"booking_id": booking_id})
    return result


def update_booking(
    db: Session,
    handlers: SideEffectHandlers,
    booking_id: int,
    changes: dict[str, Any],
) -> TransitionResult:
    """Edit contact, schedule or notes. Status is untouched."""
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}.")

    booking = booking_repository.get_booking(db, booking_id)

    # Validate everything before touching the row so a refusal leaves it clean.
    updates: dict[str, Any] = {}
    if "client_name" in changes:
        name = _clean(changes["client_name"])
        if not name:
            raise ValidationError("Client name cannot be empty.")
        updates["client_name"] = name
    if "client_email" in changes:
        updates["client_email"] = _validate_email(changes["client_email"] or "")
    if "client_phone" in changes:
        phone = _clean(changes["client_phone"])
        if not phone:
            raise ValidationError("Client phone cannot be empty.")
        updates["client_phone"] = phone
    if "notes" in changes:
        updates["notes"] = _clean(changes["notes"])
    if "internal_notes" in changes:
        updates["internal_notes"] = _clean(changes["internal_notes"])

    new_date = _coerce_date(changes["booking_date"]) if changes.get("booking_date") else booking.booking_date
    new_start = _coerce_time(changes["start_time"]) if changes.get("start_time") else booking.start_time

    moved = (new_date, new_start) != (booking.booking_date, booking.start_time)
    if moved:
        new_end = _end_time(new_start, booking.service_type.duration_minutes)
        if booking.status in ACTIVE_STATUSES:
            _reserve_slot(
                db,
                booking.service_type,
                new_date,
                TimeInterval(new_start, new_end),
                exclude_booking_id=booking_id,
            )
        updates.update(booking_date=new_date, start_time=new_start, end_time=new_end)

    for name, value in updates.items():
        setattr(booking, name, value)
    if moved:
        booking_repository.flush_slot_change(db)

    entries = []
    if booking.calendar_event_id:
        entries.append(
            outbox.enqueue(db, outbox.CALENDAR_UPDATE, booking.id, outbox.booking_snapshot(booking))
        )

    result = _commit_and_dispatch(db, booking, entries, handlers)
    logger.info("Booking updated", extra={"booking_id": booking_id, "fields": sorted(changes)})
    return result


def delete_booking(db: Session, handlers: SideEffectHandlers, booking_id: int) -> TransitionResult:
    """Hard delete.

    The calendar event goes first, while the row still exists; a confirmed
    booking's client gets a cancellation notice built from the pre-delete
    snapshot.
    """
    booking = booking_repository.get_booking(db, booking_id)
    snapshot = outbox.booking_snapshot(booking)
    warnings: list[str] = []

    if booking.calendar_event_id:
        try:
            handlers.calendar.delete_event(booking.calendar_event_id)
        except ExternalSyncFailure as exc:
            logger.warning(
                "Calendar delete failed before removing booking %s: %s",
                booking.id,
                exc.message,
            )
            outbox.enqueue(db, outbox.CALENDAR_DELETE, booking.id, snapshot)
            warnings.append(f"calendar delete for booking {booking.id} failed ({exc.message}); queued for retry.")

    entries = []
    if booking.status == CONFIRMED:
        entries = outbox.enqueue_notification(
            db,
            handlers.notifier,
            "booking_cancelled",
            CLIENT,
            snapshot,
            reason=ADMIN_CANCELLATION_REASON,
        )

    booking_repository.delete_booking_row(db, booking)
    result = _commit_and_dispatch(db, None, entries, handlers, warnings=warnings)
    result.snapshot = snapshot
    logger.info("Booking deleted", extra={"booking_id": booking_id})
    return result
