"""Free-slot computation for one service type on one date."""

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from studio_agenda.core.domain_exceptions import SlotUnavailable
from studio_agenda.db.models import ServiceType
from studio_agenda.scheduling import (
    Slot,
    TimeInterval,
    day_of_week,
    filter_available,
    format_time,
    generate_slots,
)
from studio_agenda.services import booking_repository, catalog_service

logger = logging.getLogger(__name__)

REASON_DATE_BLOCKED = "date_blocked"
REASON_NON_WORKING_DAY = "non_working_day"

UNAVAILABLE_MESSAGES = {
    REASON_DATE_BLOCKED: "The studio is closed on that date.",
    REASON_NON_WORKING_DAY: "The studio does not take bookings on that day.",
}


@dataclass(frozen=True)
class AvailabilityResult:
    service_type_id: int
    date: date
    slots: list[Slot] = field(default_factory=list)
    reason: str | None = None


def _free_intervals(
    db: Session,
    service_type: ServiceType,
    target_date: date,
    exclude_booking_id: int | None = None,
) -> tuple[list[TimeInterval], str | None]:
    if catalog_service.is_date_blocked(db, target_date):
        return [], REASON_DATE_BLOCKED

    hours = catalog_service.get_working_hours(db, day_of_week(target_date))
    if (
        hours is None
        or not hours.is_working_day
        or hours.open_time is None
        or hours.close_time is None
    ):
        return [], REASON_NON_WORKING_DAY

    candidates = generate_slots(hours.open_time, hours.close_time, service_type.duration_minutes)

    booked = booking_repository.active_intervals(
        booking_repository.list_active_bookings(
            db,
            service_type.id,
            target_date,
            exclude_booking_id=exclude_booking_id,
        )
    )
    blocked = catalog_service.time_block_intervals(
        catalog_service.list_time_blocks(db, target_date, service_type.id)
    )

    free = filter_available(candidates, booked, blocked)
    logger.debug(
        "Availability for type %s on %s: %d of %d slots free",
        service_type.id,
        target_date,
        len(free),
        len(candidates),
    )
    return free, None


def get_available_slots(db: Session, service_type_id: int, target_date: date) -> AvailabilityResult:
    """Return the slots still bookable. Read-only; safe to call repeatedly."""
    service_type = catalog_service.get_service_type(db, service_type_id)
    free, reason = _free_intervals(db, service_type, target_date)

    return AvailabilityResult(
        service_type_id=service_type_id,
        date=target_date,
        slots=[
            Slot(
                service_type_id=service_type_id,
                date=target_date,
                start_time=interval.start,
                end_time=interval.end,
            )
            for interval in free
        ],
        reason=reason,
    )


def ensure_bookable(
    db: Session,
    service_type: ServiceType,
    target_date: date,
    interval: TimeInterval,
    exclude_booking_id: int | None = None,
) -> None:
    """Raise SlotUnavailable unless ``interval`` is one of the free slots right now.

    Covers blocked dates, closed days, time blocks, the slot grid and other
    active bookings of the same type. ``exclude_booking_id`` lets a booking
    being moved ignore its own current interval.
    """
    free, reason = _free_intervals(db, service_type, target_date, exclude_booking_id)
    if reason is not None:
        raise SlotUnavailable(UNAVAILABLE_MESSAGES[reason])
    if interval not in free:
        logger.info(
            "Requested %s-%s on %s is not a free slot for type %s",
            format_time(interval.start),
            format_time(interval.end),
            target_date,
            service_type.id,
        )
        raise SlotUnavailable(booking_repository.SLOT_TAKEN_MESSAGE)
