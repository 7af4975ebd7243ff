"""Public booking routes: catalog reads, availability and booking requests."""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from studio_agenda.db.session import get_db
from studio_agenda.schemas.booking import (
    AvailabilityResponse,
    BookingCreateRequest,
    PublicBookingItem,
    SlotItem,
)
from studio_agenda.schemas.catalog import BlockedDatesResponse, ServiceTypeItem, WorkingHoursItem
from studio_agenda.schemas.common import APIResponse
from studio_agenda.services import availability_service, booking_service, catalog_service
from studio_agenda.services.outbox import SideEffectHandlers, get_side_effect_handlers

router = APIRouter(tags=["public"])


@router.get("/service-types", response_model=APIResponse[List[ServiceTypeItem]])
def list_service_types(db: Session = Depends(get_db)):
    return APIResponse(
        success=True,
        data=[ServiceTypeItem.model_validate(item) for item in catalog_service.list_service_types(db)],
    )


@router.get("/working-hours", response_model=APIResponse[List[WorkingHoursItem]])
def list_working_hours(db: Session = Depends(get_db)):
    return APIResponse(
        success=True,
        data=[WorkingHoursItem.model_validate(row) for row in catalog_service.list_working_hours(db)],
    )


@router.get("/blocked-dates", response_model=APIResponse[BlockedDatesResponse])
def list_blocked_dates(db: Session = Depends(get_db)):
    calendar = catalog_service.list_blocked_dates(db, from_date=date.today())
    return APIResponse(
        success=True,
        data=BlockedDatesResponse(
            blocked_dates=calendar.blocked_dates,
            non_working_days=calendar.non_working_days,
        ),
    )


@router.get("/availability", response_model=APIResponse[AvailabilityResponse])
def get_availability(
    service_type_id: int = Query(...),
    booking_date: date = Query(..., alias="date", description="Date in YYYY-MM-DD format"),
    db: Session = Depends(get_db),
):
    result = availability_service.get_available_slots(db, service_type_id, booking_date)
    return APIResponse(
        success=True,
        data=AvailabilityResponse(
            service_type_id=result.service_type_id,
            date=result.date,
            slots=[SlotItem.model_validate(slot) for slot in result.slots],
            reason=result.reason,
        ),
    )


@router.post("/bookings", status_code=201, response_model=APIResponse[PublicBookingItem])
def create_booking(
    payload: BookingCreateRequest,
    db: Session = Depends(get_db),
    handlers: SideEffectHandlers = Depends(get_side_effect_handlers),
):
    result = booking_service.create_booking(db, handlers, **payload.model_dump())
    # Delivery warnings are for the studio, not the person booking.
    data = PublicBookingItem.model_validate(result.booking) if result.booking is not None else None
    return APIResponse(success=True, data=data)
