# scheduler/models.py

from typing import Optional, List
from datetime import datetime, timezone, date as Date

from sqlalchemy import UniqueConstraint
from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column

from scheduler.status import AppointmentStatus
from scheduler.waitlist import WaitlistStatus


def utcnow() -> datetime:
    # SQLite keeps naive datetimes; everything stored is UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str # business or client


class Business(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_email: str = Field(index=True, unique=True)
    name: str
    timezone: str
    slot_minutes: int
    booking_horizon_days: int
    created_at: datetime = Field(default_factory=utcnow)


class Service(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("business_id", "name", name="uq_business_service_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    business_id: int = Field(foreign_key="business.id", index=True)
    name: str
    duration_minutes: int
    price: float = 0
    is_active: bool = True


class WorkingHours(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("business_id", "day_of_week", name="uq_business_weekday"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    business_id: int = Field(foreign_key="business.id", index=True)
    day_of_week: int  # 0=Mon ... 6=Sun
    start_minute: int
    end_minute: int
    breaks: List[List[int]] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = True
    slot_minutes: Optional[int] = None


class WorkingHoursOverride(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("business_id", "date", name="uq_business_override_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    business_id: int = Field(foreign_key="business.id", index=True)
    date: Date
    intervals: List[List[int]] = Field(default_factory=list, sa_column=Column(JSON))  # [] = closed


class BusinessConstraint(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(foreign_key="business.id", index=True)
    date: Date = Field(index=True)
    start_minute: int
    end_minute: int
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(foreign_key="business.id", index=True)
    service_id: int = Field(foreign_key="service.id")
    client_ref: str = Field(index=True)
    date: Date = Field(index=True)
    start_minute: int
    duration: int
    status: AppointmentStatus = AppointmentStatus.confirmed
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration


class WaitlistEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    business_id: int = Field(foreign_key="business.id", index=True)
    date: Date = Field(index=True)
    desired_start: Optional[int] = None
    desired_end: Optional[int] = None
    service_id: int = Field(foreign_key="service.id")
    client_ref: str = Field(index=True)
    status: WaitlistStatus = WaitlistStatus.waiting
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    recipient_ref: str = Field(index=True)
    title: str
    content: str
    kind: str = "waitlist_offer"
    waitlist_entry_id: Optional[int] = Field(default=None, foreign_key="waitlistentry.id")
    created_at: datetime = Field(default_factory=utcnow)
    is_read: bool = False


class DayLedger(SQLModel, table=True):
    # One row per (business, date); version moves on every admission
    business_id: int = Field(foreign_key="business.id", primary_key=True)
    date: Date = Field(primary_key=True)
    version: int = 1
