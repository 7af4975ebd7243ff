"""Side-effect outbox for booking transitions.

A transition writes its booking row and the SideEffect rows describing the
calendar/notification work in one transaction. After the commit the entries
are executed, inline by the lifecycle or later by the scheduler, each one
claimed with a status compare-and-swap so two workers never run the same
entry.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from studio_agenda.core.config import settings
from studio_agenda.core.domain_exceptions import ExternalSyncFailure, InvalidTransition, NotFound
from studio_agenda.db.models import ACTIVE_STATUSES, CONFIRMED, Booking, SideEffect
from studio_agenda.integrations.google_calendar import CalendarClient
from studio_agenda.scheduling import format_time
from studio_agenda.services.notification_service import Notifier, Recipient

logger = logging.getLogger(__name__)

CALENDAR_CREATE = "calendar.create"
CALENDAR_UPDATE = "calendar.update"
CALENDAR_DELETE = "calendar.delete"
NOTIFY = "notify"

PENDING = "pending"
PROCESSING = "processing"
DONE = "done"
FAILED = "failed"


@dataclass(frozen=True)
class SideEffectHandlers:
    calendar: CalendarClient
    notifier: Notifier
    max_attempts: int = 5
    dispatch_inline: bool = True
    # A "processing" entry older than this is assumed to belong to a dead worker.
    stale_after_seconds: int = 600


@lru_cache
def get_side_effect_handlers() -> SideEffectHandlers:
    """FastAPI dependency; tests override it with fakes."""
    return SideEffectHandlers(
        calendar=CalendarClient(settings),
        notifier=Notifier(settings),
        max_attempts=settings.outbox_max_attempts,
        dispatch_inline=settings.dispatch_inline,
        stale_after_seconds=settings.outbox_stale_after_seconds,
    )


def booking_snapshot(booking: Booking) -> dict[str, Any]:
    """JSON-safe copy of the fields calendar events and messages need."""
    return {
        "booking_id": booking.id,
        "service_type_id": booking.service_type_id,
        "service_type_name": booking.service_type.name if booking.service_type else None,
        "client_name": booking.client_name,
        "client_email": booking.client_email,
        "client_phone": booking.client_phone,
        "booking_date": booking.booking_date.isoformat(),
        "start_time": format_time(booking.start_time),
        "end_time": format_time(booking.end_time),
        "status": booking.status,
        "notes": booking.notes,
        "rejected_reason": booking.rejected_reason,
        "calendar_event_id": booking.calendar_event_id,
    }


# -------------------------------------------------------------------
# Enqueueing (inside the caller's transaction)
# -------------------------------------------------------------------


def enqueue(db: Session, kind: str, booking_id: int | None, payload: dict[str, Any]) -> SideEffect:
    entry = SideEffect(booking_id=booking_id, kind=kind, payload=payload, status=PENDING, attempts=0)
    db.add(entry)
    return entry


def enqueue_notification(
    db: Session,
    notifier: Notifier,
    kind: str,
    recipient_role: str,
    snapshot: dict[str, Any],
    **extra: Any,
) -> list[SideEffect]:
    """One outbox entry per recipient, so a retry never re-sends to the ones that succeeded."""
    payload = {**snapshot, **extra}
    return [
        enqueue(
            db,
            NOTIFY,
            snapshot.get("booking_id"),
            {
                "notification_kind": kind,
                "recipient": {
                    "role": recipient.role,
                    "channel": recipient.channel,
                    "address": recipient.address,
                },
                "booking": payload,
            },
        )
        for recipient in notifier.resolve(kind, recipient_role, payload)
    ]


# -------------------------------------------------------------------
# Execution
# -------------------------------------------------------------------


def _claimable(stale_before: datetime | None = None):
    condition = SideEffect.status == PENDING
    if stale_before is None:
        return condition
    return or_(
        condition,
        and_(
            SideEffect.status == PROCESSING,
            or_(SideEffect.claimed_at.is_(None), SideEffect.claimed_at < stale_before),
        ),
    )


def _claim(db: Session, entry_id: int, stale_before: datetime | None = None) -> SideEffect | None:
    result = db.execute(
        update(SideEffect)
        .where(SideEffect.id == entry_id)
        .where(_claimable(stale_before))
        .values(
            status=PROCESSING,
            attempts=SideEffect.attempts + 1,
            claimed_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount == 0:
        return None
    return db.scalar(
        select(SideEffect)
        .where(SideEffect.id == entry_id)
        .execution_options(populate_existing=True)
    )


def _current_booking(db: Session, booking_id: int | None) -> Booking | None:
    if booking_id is None:
        return None
    return db.scalar(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )


def _run_calendar_create(db: Session, entry: SideEffect, handlers: SideEffectHandlers) -> None:
    booking = _current_booking(db, entry.booking_id)
    if booking is None or booking.status != CONFIRMED:
        logger.info("Skipping calendar create for booking %s: no longer confirmed.", entry.booking_id)
        return
    if booking.calendar_event_id:
        return

    event_id = handlers.calendar.create_event(entry.payload)
    if not event_id:
        return

    booking = _current_booking(db, entry.booking_id)
    if booking is None or booking.status not in ACTIVE_STATUSES:
        # Deleted or cancelled while the event was being created.
        logger.info("Removing orphan calendar event %s for booking %s.", event_id, entry.booking_id)
        handlers.calendar.delete_event(event_id)
        return

    booking.calendar_event_id = event_id
    db.commit()
    logger.info("Stored calendar event id", extra={"booking_id": entry.booking_id, "event_id": event_id})


def _run_calendar_update(db: Session, entry: SideEffect, handlers: SideEffectHandlers) -> None:
    booking = _current_booking(db, entry.booking_id)
    if booking is None or not booking.calendar_event_id:
        return
    # Push the current row, not the snapshot, so queued edits collapse into the latest one.
    handlers.calendar.update_event(booking.calendar_event_id, booking_snapshot(booking))


def _run_calendar_delete(db: Session, entry: SideEffect, handlers: SideEffectHandlers) -> None:
    event_id = entry.payload.get("calendar_event_id")
    if event_id:
        handlers.calendar.delete_event(event_id)


def _run_notify(db: Session, entry: SideEffect, handlers: SideEffectHandlers) -> None:
    recipient = Recipient(**entry.payload["recipient"])
    handlers.notifier.deliver(entry.payload["notification_kind"], recipient, entry.payload["booking"])


RUNNERS: dict[str, Callable[[Session, SideEffect, SideEffectHandlers], None]] = {
    CALENDAR_CREATE: _run_calendar_create,
    CALENDAR_UPDATE: _run_calendar_update,
    CALENDAR_DELETE: _run_calendar_delete,
    NOTIFY: _run_notify,
}


def _describe(entry: SideEffect) -> str:
    if entry.kind == NOTIFY:
        return f"{entry.payload.get('notification_kind')} notification"
    return entry.kind.replace(".", " ")


def process_entry(
    db: Session,
    entry_id: int,
    handlers: SideEffectHandlers,
    stale_before: datetime | None = None,
) -> str | None:
    """Run one entry. Returns a warning message when it failed, else None."""
    entry = _claim(db, entry_id, stale_before)
    if entry is None:
        return None

    try:
        RUNNERS[entry.kind](db, entry, handlers)
    except ExternalSyncFailure as exc:
        db.rollback()
        return _record_failure(db, entry, exc.message, handlers.max_attempts)
    except Exception as exc:
        db.rollback()
        logger.exception("Side effect %s crashed", entry.id)
        return _record_failure(db, entry, str(exc) or exc.__class__.__name__, handlers.max_attempts)

    entry.status = DONE
    entry.last_error = None
    entry.processed_at = datetime.now(timezone.utc)
    db.commit()
    return None


def _record_failure(db: Session, entry: SideEffect, error: str, max_attempts: int) -> str:
    entry = db.get(SideEffect, entry.id)
    exhausted = entry.attempts >= max_attempts
    entry.status = FAILED if exhausted else PENDING
    entry.last_error = error
    entry.processed_at = datetime.now(timezone.utc)
    db.commit()

    logger.warning(
        "Side effect %s (%s) failed on attempt %d: %s",
        entry.id,
        entry.kind,
        entry.attempts,
        error,
        extra={"booking_id": entry.booking_id},
    )
    suffix = "giving up" if exhausted else "queued for retry"
    return f"{_describe(entry)} for booking {entry.booking_id} failed ({error}); {suffix}."


def dispatch(db: Session, entries: Iterable[SideEffect], handlers: SideEffectHandlers) -> list[str]:
    """Run freshly committed entries now and collect warnings for the caller."""
    warnings = []
    for entry_id in [entry.id for entry in entries]:
        warning = process_entry(db, entry_id, handlers)
        if warning:
            warnings.append(warning)
    return warnings


def drain_outbox(
    session_factory: Callable[[], Session],
    handlers: SideEffectHandlers,
    limit: int = 50,
) -> dict[str, int]:
    """Process pending entries oldest first. Used by the background scheduler.

    Entries left in ``processing`` by a worker that died mid-run are picked up
    again once their claim is older than ``handlers.stale_after_seconds``.
    """
    stale_before = datetime.now(timezone.utc) - timedelta(seconds=handlers.stale_after_seconds)
    db = session_factory()
    try:
        entry_ids = db.scalars(
            select(SideEffect.id)
            .where(_claimable(stale_before))
            .order_by(SideEffect.created_at.asc(), SideEffect.id.asc())
            .limit(limit)
        ).all()

        processed, failed = 0, 0
        for entry_id in entry_ids:
            if process_entry(db, entry_id, handlers, stale_before):
                failed += 1
            else:
                processed += 1
        return {"candidates": len(entry_ids), "processed": processed, "failed": failed}
    finally:
        db.close()


# -------------------------------------------------------------------
# Admin views
# -------------------------------------------------------------------


def list_side_effects(db: Session, status: str | None = None, limit: int = 100) -> list[SideEffect]:
    query = select(SideEffect).order_by(SideEffect.id.desc()).limit(limit)
    if status is not None:
        query = query.where(SideEffect.status == status)
    return list(db.scalars(query).all())


def retry_side_effect(db: Session, entry_id: int) -> SideEffect:
    """Put a failed (or stuck) entry back in the queue with a fresh attempt budget."""
    entry = db.get(SideEffect, entry_id)
    if entry is None:
        raise NotFound("Side effect not found.")
    if entry.status == DONE:
        raise InvalidTransition("Side effect already completed.")

    entry.status = PENDING
    entry.attempts = 0
    entry.last_error = None
    entry.claimed_at = None
    db.commit()
    db.refresh(entry)
    return entry
