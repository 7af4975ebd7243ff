from datetime import date, time

from pydantic import BaseModel, ConfigDict, Field


class ServiceTypeItem(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    duration_minutes: int
    color: str | None = None
    is_active: bool
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class ServiceTypeCreate(BaseModel):
    name: str
    duration_minutes: int = Field(gt=0)
    slug: str | None = None
    color: str | None = None
    description: str | None = None
    display_order: int = 0
    is_active: bool = True


class ServiceTypeUpdate(BaseModel):
    name: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    color: str | None = None
    description: str | None = None
    display_order: int | None = None
    is_active: bool | None = None


class WorkingHoursItem(BaseModel):
    day_of_week: int
    is_working_day: bool
    open_time: time | None = None
    close_time: time | None = None

    model_config = ConfigDict(from_attributes=True)


class WorkingHoursUpdate(BaseModel):
    is_working_day: bool
    open_time: time | None = None
    close_time: time | None = None


class BlockedDatesResponse(BaseModel):
    blocked_dates: list[date]
    non_working_days: list[int]


class BlockedDateCreate(BaseModel):
    blocked_date: date
    reason: str | None = None


class BlockedDateItem(BaseModel):
    id: int
    blocked_date: date
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BlockedTimeSlotCreate(BaseModel):
    blocked_date: date
    start_time: time
    end_time: time
    service_type_id: int | None = None
    reason: str | None = None


class BlockedTimeSlotItem(BaseModel):
    id: int
    blocked_date: date
    start_time: time
    end_time: time
    service_type_id: int | None = None
    reason: str | None = None

    model_config = ConfigDict(from_attributes=True)
