"""SQLAlchemy ORM models."""

from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from studio_agenda.db.session import Base

PENDING = "pending"
CONFIRMED = "confirmed"
REJECTED = "rejected"
CANCELLED = "cancelled"

BOOKING_STATUSES = (PENDING, CONFIRMED, REJECTED, CANCELLED)
# Statuses that hold a slot.
ACTIVE_STATUSES = (PENDING, CONFIRMED)

_ACTIVE_SLOT_PREDICATE = text("status IN ('pending', 'confirmed')")


class ServiceType(Base):
    """A bookable session kind (portrait, product shoot, consultation...)."""

    __tablename__ = "service_types"
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_service_types_duration_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("1"),
    )
    display_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    # Bumped by every slot writer; the UPDATE is the per-type write lock.
    booking_revision: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    bookings: Mapped[list["Booking"]] = relationship(back_populates="service_type")
    blocked_time_slots: Mapped[list["BlockedTimeSlot"]] = relationship(
        back_populates="service_type",
        cascade="all, delete-orphan",
    )


class WorkingHours(Base):
    """Weekly template row; day_of_week uses Sunday = 0."""

    __tablename__ = "working_hours"
    __table_args__ = (
        UniqueConstraint("day_of_week", name="uq_working_hours_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_working_hours_day_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_working_day: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("0"),
    )
    open_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    close_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)


class BlockedDate(Base):
    """A whole day closed for every service type."""

    __tablename__ = "blocked_dates"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    blocked_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class BlockedTimeSlot(Base):
    """Partial-day closure; a null service_type_id applies to every type."""

    __tablename__ = "blocked_time_slots"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_blocked_time_slots_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    blocked_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    service_type_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("service_types.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    service_type: Mapped[Optional["ServiceType"]] = relationship(
        back_populates="blocked_time_slots",
    )


class Booking(Base):
    """A client's request for one slot of one service type."""

    __tablename__ = "bookings"
    __table_args__ = (
        # At most one active booking per (type, date, start).
        Index(
            "uq_bookings_active_slot",
            "service_type_id",
            "booking_date",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
        ),
        Index("ix_bookings_type_date_status", "service_type_id", "booking_date", "status"),
        CheckConstraint("start_time < end_time", name="ck_bookings_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    service_type_id: Mapped[int] = mapped_column(
        ForeignKey("service_types.id"),
        nullable=False,
        index=True,
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(320), nullable=False)
    client_phone: Mapped[str] = mapped_column(String(32), nullable=False)

    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=PENDING,
        server_default=text("'pending'"),
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejected_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    calendar_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )

    service_type: Mapped["ServiceType"] = relationship(back_populates="bookings")


class SideEffect(Base):
    """Outbox entry for calendar sync or notification work.

    booking_id is not a foreign key: entries emitted by a delete outlive the
    booking row.
    """

    __tablename__ = "side_effects"
    __table_args__ = (
        Index("ix_side_effects_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    booking_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="pending",
        server_default=text("'pending'"),
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
