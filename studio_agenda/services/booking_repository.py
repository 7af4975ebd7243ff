"""Persistence helpers for bookings.

Writes here only flush; the caller owns the transaction so that a status
change and the outbox entries it emits commit together.
"""

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from studio_agenda.core.domain_exceptions import InvalidTransition, NotFound, SlotUnavailable
from studio_agenda.core.error_codes import ErrorCode
from studio_agenda.db.models import ACTIVE_STATUSES, Booking, ServiceType
from studio_agenda.scheduling import TimeInterval

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is no longer available."


def find_booking(db: Session, booking_id: int) -> Booking | None:
    """Fresh read of the row, or None once another session has deleted it."""
    return db.scalar(
        select(Booking)
        .options(joinedload(Booking.service_type))
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )


def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.scalar(
        select(Booking)
        .options(joinedload(Booking.service_type))
        .where(Booking.id == booking_id)
    )
    if booking is None:
        raise NotFound("Booking not found.", code=ErrorCode.BOOKING_NOT_FOUND)
    return booking


def list_bookings(
    db: Session,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Booking]:
    query = (
        select(Booking)
        .options(joinedload(Booking.service_type))
        .order_by(Booking.booking_date.asc(), Booking.start_time.asc(), Booking.id.asc())
    )
    if status is not None:
        query = query.where(Booking.status == status)
    if date_from is not None:
        query = query.where(Booking.booking_date >= date_from)
    if date_to is not None:
        query = query.where(Booking.booking_date <= date_to)
    return list(db.scalars(query).all())


def list_active_bookings(
    db: Session,
    service_type_id: int,
    booking_date: date,
    exclude_booking_id: int | None = None,
) -> list[Booking]:
    """Pending and confirmed bookings that hold time for (type, date)."""
    query = (
        select(Booking)
        .where(Booking.service_type_id == service_type_id)
        .where(Booking.booking_date == booking_date)
        .where(Booking.status.in_(ACTIVE_STATUSES))
        .order_by(Booking.start_time.asc())
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    return list(db.scalars(query).all())


def active_intervals(bookings: Iterable[Booking]) -> list[TimeInterval]:
    return [TimeInterval(booking.start_time, booking.end_time) for booking in bookings]


def lock_service_type(db: Session, service_type_id: int) -> None:
    """Serialize slot writers for one service type until the caller commits.

    Bumping ``booking_revision`` is a write, so it opens the transaction and
    takes the row lock on PostgreSQL/MySQL and the database write lock on
    SQLite (which ignores FOR UPDATE). Overlap reads made afterwards see every
    booking committed by the previous holder.
    """
    db.execute(
        update(ServiceType)
        .where(ServiceType.id == service_type_id)
        .values(booking_revision=ServiceType.booking_revision + 1)
        .execution_options(synchronize_session=False)
    )


def insert_booking(db: Session, booking: Booking) -> Booking:
    """Add and flush; a collision on the active-slot index means the slot is taken."""
    try:
        db.add(booking)
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.info(
            "Active slot index rejected booking insert",
            extra={"service_type_id": booking.service_type_id},
        )
        raise SlotUnavailable(SLOT_TAKEN_MESSAGE) from exc
    return booking


def flush_slot_change(db: Session) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise SlotUnavailable(SLOT_TAKEN_MESSAGE) from exc


def transition_status(
    db: Session,
    booking_id: int,
    allowed_from: Iterable[str],
    values: dict[str, Any],
) -> Booking:
    """Compare-and-swap the status column.

    The UPDATE only matches while the row is still in one of ``allowed_from``;
    a concurrent admin action that got there first leaves zero rows matched.
    """
    allowed = tuple(allowed_from)
    result = db.execute(
        update(Booking)
        .where(Booking.id == booking_id)
        .where(Booking.status.in_(allowed))
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        current = db.scalar(select(Booking.status).where(Booking.id == booking_id))
        if current is None:
            raise NotFound("Booking not found.", code=ErrorCode.BOOKING_NOT_FOUND)
        raise InvalidTransition(
            f"Cannot move a {current} booking to {values.get('status', current)}."
        )

    return find_booking(db, booking_id)


def delete_booking_row(db: Session, booking: Booking) -> None:
    db.delete(booking)
    db.flush()
