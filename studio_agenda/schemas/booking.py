from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict


class SlotItem(BaseModel):
    service_type_id: int
    date: date
    start_time: time
    end_time: time

    model_config = ConfigDict(from_attributes=True)


class AvailabilityResponse(BaseModel):
    service_type_id: int
    date: date
    slots: list[SlotItem]
    reason: str | None = None


class BookingCreateRequest(BaseModel):
    # Optional at the schema level so missing fields reach the domain validator.
    service_type_id: int | None = None
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    booking_date: date | None = None
    start_time: str | None = None
    notes: str | None = None


class BookingUpdateRequest(BaseModel):
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    booking_date: date | None = None
    start_time: str | None = None
    notes: str | None = None
    internal_notes: str | None = None


class ConfirmRequest(BaseModel):
    internal_notes: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class BookingItem(BaseModel):
    id: int
    service_type_id: int
    service_type_name: str | None = None
    client_name: str
    client_email: str
    client_phone: str
    booking_date: date
    start_time: time
    end_time: time
    status: str
    notes: str | None = None
    internal_notes: str | None = None
    rejected_reason: str | None = None
    calendar_event_id: str | None = None
    confirmed_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PublicBookingItem(BaseModel):
    """What the public submitter gets back; no admin-only fields."""

    id: int
    service_type_id: int
    client_name: str
    booking_date: date
    start_time: time
    end_time: time
    status: str

    model_config = ConfigDict(from_attributes=True)


class DeleteResponse(BaseModel):
    booking_id: int
    deleted: bool


class SideEffectItem(BaseModel):
    id: int
    booking_id: int | None
    kind: str
    status: str
    attempts: int
    last_error: str | None = None
    payload: dict[str, Any]
    created_at: datetime | None = None
    claimed_at: datetime | None = None
    processed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
