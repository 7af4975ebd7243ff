from datetime import date
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from studio_agenda.db.models import Booking
from studio_agenda.db.session import get_db
from studio_agenda.schemas.booking import (
    BookingItem,
    BookingUpdateRequest,
    ConfirmRequest,
    DeleteResponse,
    RejectRequest,
    SideEffectItem,
)
from studio_agenda.schemas.common import APIResponse
from studio_agenda.services import booking_service, outbox
from studio_agenda.services.outbox import SideEffectHandlers, get_side_effect_handlers

router = APIRouter(prefix="/admin", tags=["admin bookings"])


def _booking_item(booking: Booking) -> BookingItem:
    item = BookingItem.model_validate(booking)
    item.service_type_name = booking.service_type.name if booking.service_type else None
    return item


def _transition_response(result: booking_service.TransitionResult) -> APIResponse[BookingItem]:
    return APIResponse(
        success=True,
        data=_booking_item(result.booking) if result.booking is not None else None,
        warnings=result.warnings,
    )


@router.get("/bookings", response_model=APIResponse[List[BookingItem]])
def list_bookings(
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    db: Session = Depends(get_db),
):
    bookings = booking_service.list_bookings(db, status=status, date_from=date_from, date_to=date_to)
    return APIResponse(success=True, data=[_booking_item(booking) for booking in bookings])


@router.get("/bookings/{booking_id}", response_model=APIResponse[BookingItem])
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    return APIResponse(success=True, data=_booking_item(booking_service.get_booking(db, booking_id)))


@router.post("/bookings/{booking_id}/confirm", response_model=APIResponse[BookingItem])
def confirm(
    booking_id: int,
    payload: ConfirmRequest | None = None,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    internal_notes = payload.internal_notes if payload else None
    return _transition_response(
        booking_service.confirm_booking(db, handlers, booking_id, internal_notes=internal_notes)
    )


@router.post("/bookings/{booking_id}/reject", response_model=APIResponse[BookingItem])
def reject(
    booking_id: int,
    payload: RejectRequest | None = None,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    reason = payload.reason if payload else None
    return _transition_response(booking_service.reject_booking(db, handlers, booking_id, reason=reason))


@router.patch("/bookings/{booking_id}", response_model=APIResponse[BookingItem])
def update(
    booking_id: int,
    payload: BookingUpdateRequest,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    changes = payload.model_dump(exclude_unset=True)
    return _transition_response(booking_service.update_booking(db, handlers, booking_id, changes))


@router.post("/bookings/{booking_id}/cancel", response_model=APIResponse[BookingItem])
def cancel(
    booking_id: int,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    return _transition_response(booking_service.cancel_booking(db, handlers, booking_id))


@router.delete("/bookings/{booking_id}", response_model=APIResponse[DeleteResponse])
def delete(
    booking_id: int,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    result = booking_service.delete_booking(db, handlers, booking_id)
    return APIResponse(
        success=True,
        data=DeleteResponse(booking_id=booking_id, deleted=True),
        warnings=result.warnings,
    )


@router.get("/side-effects", response_model=APIResponse[List[SideEffectItem]])
def list_side_effects(status: str | None = None, db: Session = Depends(get_db)):
    entries = outbox.list_side_effects(db, status=status)
    return APIResponse(success=True, data=[SideEffectItem.model_validate(entry) for entry in entries])


@router.post("/side-effects/{side_effect_id}/retry", response_model=APIResponse[SideEffectItem])
def retry_side_effect(
    side_effect_id: int,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    entry = outbox.retry_side_effect(db, side_effect_id)
    warnings = outbox.dispatch(db, [entry], handlers)
    db.refresh(entry)
    return APIResponse(success=True, data=SideEffectItem.model_validate(entry), warnings=warnings)
