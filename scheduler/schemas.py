# scheduler/schemas.py

from pydantic import BaseModel, Field, model_validator
from enum import Enum
from datetime import date, datetime
from typing import List, Optional

from scheduler.status import AppointmentStatus
from scheduler.waitlist import TimePeriod, WaitlistStatus


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserRole(str, Enum):
    business = "business"
    client = "client"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole
    business_id: Optional[int] = None


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole


class BusinessCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    timezone: Optional[str] = None
    slot_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    booking_horizon_days: Optional[int] = Field(default=None, ge=0, le=365)
    seed_defaults: bool = True


class BusinessPublic(BaseModel):
    id: int
    name: str
    owner_email: str
    timezone: str
    slot_minutes: int
    booking_horizon_days: int


class IntervalIn(BaseModel):
    start: int = Field(ge=0, le=24 * 60)
    end: int = Field(ge=0, le=24 * 60)

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class WorkingHoursDay(BaseModel):
    day_of_week: int = Field(ge=0, le=6)     # 0=Mon, 1=Tues....
    start_minute: int = Field(ge=0, le=24 * 60)
    end_minute: int = Field(ge=0, le=24 * 60)
    breaks: List[IntervalIn] = []
    is_active: bool = True
    slot_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)


class WorkingHoursSchedule(BaseModel):
    days: List[WorkingHoursDay]


class OverrideIn(BaseModel):
    intervals: List[IntervalIn] = []


class OverridePublic(BaseModel):
    date: date
    intervals: List[IntervalIn]


class ConstraintCreate(BaseModel):
    date: date
    start_minute: int = Field(ge=0, le=24 * 60)
    end_minute: int = Field(ge=0, le=24 * 60)
    reason: Optional[str] = None


class ConstraintPublic(ConstraintCreate):
    id: int


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    duration_minutes: int = Field(gt=0, le=24 * 60)
    price: float = Field(default=0, ge=0)


class ServicePublic(ServiceCreate):
    id: int
    business_id: int
    is_active: bool


class SlotPublic(BaseModel):
    date: date
    start_time: int
    end_time: int
    label: str
    available: bool = True


class AvailabilityResponse(BaseModel):
    business_id: int
    date: date
    service_id: int
    available_starts: List[str]
    slots: List[SlotPublic]


class BookingCreate(BaseModel):
    date: date
    start_time: int = Field(ge=0, lt=24 * 60)
    service_id: int


class AppointmentPublic(BaseModel):
    id: int
    business_id: int
    service_id: int
    client_ref: str
    date: date
    start_time: int
    end_time: int
    duration: int
    status: AppointmentStatus


class BookingRejection(BaseModel):
    reason: str
    waitlist_offered: bool


class StatusChange(BaseModel):
    status: AppointmentStatus


class WaitlistJoin(BaseModel):
    date: date
    service_id: int
    period: Optional[TimePeriod] = None
    desired_start: Optional[int] = Field(default=None, ge=0, le=24 * 60)
    desired_end: Optional[int] = Field(default=None, ge=0, le=24 * 60)

    @model_validator(mode="after")
    def _window_shape(self):
        explicit = (self.desired_start, self.desired_end)
        if (explicit[0] is None) != (explicit[1] is None):
            raise ValueError("desired_start and desired_end go together")
        if explicit[0] is not None and self.period is not None:
            raise ValueError("use period OR desired_start/desired_end")
        return self


class WaitlistPublic(BaseModel):
    id: int
    business_id: int
    date: date
    service_id: int
    client_ref: str
    desired_start: Optional[int]
    desired_end: Optional[int]
    status: WaitlistStatus
    created_at: datetime
    expires_at: datetime


class NotificationPublic(BaseModel):
    id: int
    title: str
    content: str
    kind: str
    waitlist_entry_id: Optional[int]
    created_at: datetime
    is_read: bool
