"""Admin configuration of the agenda: service types, hours and blocks."""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from studio_agenda.db.session import get_db
from studio_agenda.schemas.catalog import (
    BlockedDateCreate,
    BlockedDateItem,
    BlockedTimeSlotCreate,
    BlockedTimeSlotItem,
    ServiceTypeCreate,
    ServiceTypeItem,
    ServiceTypeUpdate,
    WorkingHoursItem,
    WorkingHoursUpdate,
)
from studio_agenda.schemas.common import APIResponse
from studio_agenda.services import catalog_service

router = APIRouter(prefix="/admin", tags=["admin catalog"])


@router.get("/service-types", response_model=APIResponse[List[ServiceTypeItem]])
def list_all_service_types(db: Session = Depends(get_db)):
    items = catalog_service.list_service_types(db, include_inactive=True)
    return APIResponse(success=True, data=[ServiceTypeItem.model_validate(item) for item in items])


@router.post("/service-types", status_code=201, response_model=APIResponse[ServiceTypeItem])
def create_service_type(payload: ServiceTypeCreate, db: Session = Depends(get_db)):
    service_type = catalog_service.create_service_type(db, **payload.model_dump())
    return APIResponse(success=True, data=ServiceTypeItem.model_validate(service_type))


@router.patch("/service-types/{service_type_id}", response_model=APIResponse[ServiceTypeItem])
def update_service_type(service_type_id: int, payload: ServiceTypeUpdate, db: Session = Depends(get_db)):
    service_type = catalog_service.update_service_type(
        db,
        service_type_id,
        **payload.model_dump(exclude_unset=True),
    )
    return APIResponse(success=True, data=ServiceTypeItem.model_validate(service_type))


@router.put("/working-hours/{day_of_week}", response_model=APIResponse[WorkingHoursItem])
def set_working_hours(day_of_week: int, payload: WorkingHoursUpdate, db: Session = Depends(get_db)):
    entry = catalog_service.upsert_working_hours(
        db,
        day_of_week=day_of_week,
        is_working_day=payload.is_working_day,
        open_time=payload.open_time,
        close_time=payload.close_time,
    )
    return APIResponse(success=True, data=WorkingHoursItem.model_validate(entry))


@router.get("/blocked-dates", response_model=APIResponse[List[BlockedDateItem]])
def list_blocked_dates(db: Session = Depends(get_db)):
    rows = catalog_service.list_blocked_date_rows(db)
    return APIResponse(success=True, data=[BlockedDateItem.model_validate(row) for row in rows])


@router.post("/blocked-dates", status_code=201, response_model=APIResponse[BlockedDateItem])
def add_blocked_date(payload: BlockedDateCreate, db: Session = Depends(get_db)):
    block = catalog_service.add_blocked_date(db, payload.blocked_date, reason=payload.reason)
    return APIResponse(success=True, data=BlockedDateItem.model_validate(block))


@router.delete("/blocked-dates/{block_id}", status_code=204)
def remove_blocked_date(block_id: int, db: Session = Depends(get_db)):
    catalog_service.remove_blocked_date(db, block_id)
    return Response(status_code=204)


@router.get("/blocked-time-slots", response_model=APIResponse[List[BlockedTimeSlotItem]])
def list_blocked_time_slots(blocked_date: date | None = None, db: Session = Depends(get_db)):
    rows = catalog_service.list_time_block_rows(db, target_date=blocked_date)
    return APIResponse(success=True, data=[BlockedTimeSlotItem.model_validate(row) for row in rows])


@router.post("/blocked-time-slots", status_code=201, response_model=APIResponse[BlockedTimeSlotItem])
def add_blocked_time_slot(payload: BlockedTimeSlotCreate, db: Session = Depends(get_db)):
    block = catalog_service.add_blocked_time_slot(db, **payload.model_dump())
    return APIResponse(success=True, data=BlockedTimeSlotItem.model_validate(block))


@router.delete("/blocked-time-slots/{block_id}", status_code=204)
def remove_blocked_time_slot(block_id: int, db: Session = Depends(get_db)):
    catalog_service.remove_blocked_time_slot(db, block_id)
    return Response(status_code=204)
