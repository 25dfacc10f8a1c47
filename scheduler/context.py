# scheduler/context.py

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from scheduler.errors import ValidationError


@dataclass(frozen=True)
class BusinessContext:
    """The tenant every core operation runs against. Passed explicitly."""

    business_id: int
    timezone: str
    slot_minutes: int
    booking_horizon_days: int

    @classmethod
    def from_business(cls, business) -> "BusinessContext":
        return cls(
            business_id=business.id,
            timezone=business.timezone,
            slot_minutes=business.slot_minutes,
            booking_horizon_days=business.booking_horizon_days,
        )

    def now(self) -> datetime:
        return datetime.now(zone(self.timezone))

    def today(self) -> date:
        return self.now().date()

    def minute_now(self) -> int:
        now = self.now()
        return now.hour * 60 + now.minute

    def last_bookable_date(self) -> date:
        return self.today() + timedelta(days=self.booking_horizon_days)

    def ensure_bookable_date(self, on_date: date) -> None:
        today = self.today()
        if on_date < today:
            raise ValidationError(f"{on_date.isoformat()} is in the past")
        if on_date > self.last_bookable_date():
            raise ValidationError(
                f"{on_date.isoformat()} is more than {self.booking_horizon_days} days ahead"
            )

    def not_before(self, on_date: date):
        """Earliest start minute still bookable on ``on_date`` (None: no limit)."""
        if on_date == self.today():
            return self.minute_now() + 1
        return None


def zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"unknown timezone {name!r}")
