"""Service types, weekly working hours and date/time blocks."""

import logging
import re
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from studio_agenda.core.domain_exceptions import Conflict, NotFound, ValidationError
from studio_agenda.core.error_codes import ErrorCode
from studio_agenda.db.models import (
    BlockedDate,
    BlockedTimeSlot,
    Booking,
    ServiceType,
    WorkingHours,
)
from studio_agenda.scheduling import TimeInterval

logger = logging.getLogger(__name__)

SERVICE_TYPE_DISPLAY_FIELDS = ("name", "color", "description", "display_order", "is_active")


@dataclass(frozen=True)
class BlockedCalendar:
    blocked_dates: list[date]
    non_working_days: list[int]


def _slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "service"


# -------------------------------------------------------------------
# Service types
# -------------------------------------------------------------------


def list_service_types(db: Session, include_inactive: bool = False) -> list[ServiceType]:
    query = select(ServiceType).order_by(ServiceType.display_order.asc(), ServiceType.id.asc())
    if not include_inactive:
        query = query.where(ServiceType.is_active.is_(True))
    return list(db.scalars(query).all())


def get_service_type(db: Session, service_type_id: int, active_only: bool = True) -> ServiceType:
    service_type = db.get(ServiceType, service_type_id)
    if service_type is None or (active_only and not service_type.is_active):
        raise NotFound(
            "Service type not found.",
            code=ErrorCode.SERVICE_TYPE_NOT_FOUND,
        )
    return service_type


def create_service_type(
    db: Session,
    name: str,
    duration_minutes: int,
    slug: str | None = None,
    color: str | None = None,
    description: str | None = None,
    display_order: int = 0,
    is_active: bool = True,
) -> ServiceType:
    if not name or not name.strip():
        raise ValidationError("Service type name is required.")
    if duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes.")

    service_type = ServiceType(
        name=name.strip(),
        slug=_slugify(slug or name),
        duration_minutes=duration_minutes,
        color=color,
        description=description,
        display_order=display_order,
        is_active=is_active,
    )
    try:
        db.add(service_type)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"A service type with slug {service_type.slug!r} already exists.")
    db.refresh(service_type)
    logger.info("Service type created", extra={"service_type_id": service_type.id})
    return service_type


def update_service_type(db: Session, service_type_id: int, **changes) -> ServiceType:
    """Edit a service type. Duration is frozen once any booking references it."""
    service_type = get_service_type(db, service_type_id, active_only=False)

    new_duration = changes.pop("duration_minutes", None)
    if new_duration is not None and new_duration != service_type.duration_minutes:
        if new_duration <= 0:
            raise ValidationError("Duration must be a positive number of minutes.")
        referenced = db.scalar(
            select(func.count(Booking.id)).where(Booking.service_type_id == service_type_id)
        )
        if referenced:
            raise ValidationError("Duration cannot change once bookings reference this service type.")
        service_type.duration_minutes = new_duration

    for field_name in SERVICE_TYPE_DISPLAY_FIELDS:
        value = changes.get(field_name)
        if value is not None:
            setattr(service_type, field_name, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(service_type)
    return service_type


# -------------------------------------------------------------------
# Working hours
# -------------------------------------------------------------------


def list_working_hours(db: Session) -> list[WorkingHours]:
    return list(db.scalars(select(WorkingHours).order_by(WorkingHours.day_of_week.asc())).all())


def get_working_hours(db: Session, day_of_week: int) -> WorkingHours | None:
    return db.scalar(select(WorkingHours).where(WorkingHours.day_of_week == day_of_week))


def upsert_working_hours(
    db: Session,
    day_of_week: int,
    is_working_day: bool,
    open_time: time | None = None,
    close_time: time | None = None,
) -> WorkingHours:
    if not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday).")

    if is_working_day:
        if open_time is None or close_time is None:
            raise ValidationError("Working days need both an open and a close time.")
        if open_time >= close_time:
            raise ValidationError("Open time must be earlier than close time.")
    else:
        open_time = None
        close_time = None

    entry = get_working_hours(db, day_of_week)
    if entry is None:
        entry = WorkingHours(day_of_week=day_of_week)
        db.add(entry)

    entry.is_working_day = is_working_day
    entry.open_time = open_time
    entry.close_time = close_time

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(entry)
    return entry


# -------------------------------------------------------------------
# Blocks
# -------------------------------------------------------------------


def is_date_blocked(db: Session, target_date: date) -> bool:
    return db.scalar(select(BlockedDate.id).where(BlockedDate.blocked_date == target_date)) is not None


def list_blocked_dates(db: Session, from_date: date | None = None) -> BlockedCalendar:
    """Upcoming blocked dates plus the days of week that never open."""
    query = select(BlockedDate.blocked_date).order_by(BlockedDate.blocked_date.asc())
    if from_date is not None:
        query = query.where(BlockedDate.blocked_date >= from_date)

    non_working = db.scalars(
        select(WorkingHours.day_of_week)
        .where(WorkingHours.is_working_day.is_(False))
        .order_by(WorkingHours.day_of_week.asc())
    ).all()

    return BlockedCalendar(
        blocked_dates=list(db.scalars(query).all()),
        non_working_days=list(non_working),
    )


def list_blocked_date_rows(db: Session) -> list[BlockedDate]:
    return list(db.scalars(select(BlockedDate).order_by(BlockedDate.blocked_date.asc())).all())


def add_blocked_date(db: Session, blocked_date: date, reason: str | None = None) -> BlockedDate:
    block = BlockedDate(blocked_date=blocked_date, reason=reason)
    try:
        db.add(block)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"{blocked_date.isoformat()} is already blocked.")
    db.refresh(block)
    logger.info("Blocked date %s", blocked_date)
    return block


def remove_blocked_date(db: Session, block_id: int) -> None:
    block = db.get(BlockedDate, block_id)
    if block is None:
        raise NotFound("Blocked date not found.")
    db.delete(block)
    db.commit()


def list_time_blocks(db: Session, target_date: date, service_type_id: int) -> list[BlockedTimeSlot]:
    """Blocks on a date that apply to the given type, global ones included."""
    return list(
        db.scalars(
            select(BlockedTimeSlot)
            .where(BlockedTimeSlot.blocked_date == target_date)
            .where(
                or_(
                    BlockedTimeSlot.service_type_id.is_(None),
                    BlockedTimeSlot.service_type_id == service_type_id,
                )
            )
            .order_by(BlockedTimeSlot.start_time.asc())
        ).all()
    )


def list_time_block_rows(db: Session, target_date: date | None = None) -> list[BlockedTimeSlot]:
    query = select(BlockedTimeSlot).order_by(
        BlockedTimeSlot.blocked_date.asc(),
        BlockedTimeSlot.start_time.asc(),
    )
    if target_date is not None:
        query = query.where(BlockedTimeSlot.blocked_date == target_date)
    return list(db.scalars(query).all())


def time_block_intervals(blocks: list[BlockedTimeSlot]) -> list[TimeInterval]:
    return [TimeInterval(block.start_time, block.end_time) for block in blocks]


def add_blocked_time_slot(
    db: Session,
    blocked_date: date,
    start_time: time,
    end_time: time,
    service_type_id: int | None = None,
    reason: str | None = None,
) -> BlockedTimeSlot:
    if start_time >= end_time:
        raise ValidationError("Block start time must be earlier than its end time.")
    if service_type_id is not None:
        get_service_type(db, service_type_id, active_only=False)

    block = BlockedTimeSlot(
        blocked_date=blocked_date,
        start_time=start_time,
        end_time=end_time,
        service_type_id=service_type_id,
        reason=reason,
    )
    try:
        db.add(block)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(block)
    return block


def remove_blocked_time_slot(db: Session, block_id: int) -> None:
    block = db.get(BlockedTimeSlot, block_id)
    if block is None:
        raise NotFound("Blocked time slot not found.")
    db.delete(block)
    db.commit()
