# scheduler/data.py
"""Defaults seeded into every new business."""

from sqlmodel import Session

from scheduler.intervals import parse_minute
from scheduler.models import Business, Service, WorkingHours

# name -> (minutes, price)
DEFAULT_SERVICES = {
    "shape_up": (15, 15.0),
    "beard_trim": (15, 15.0),
    "haircut": (30, 30.0),
    "fade": (30, 35.0),
    "scissors_cut": (30, 35.0),
    "cut_and_beard": (45, 45.0),
}

shop_settings = {
    "open_time": "09:00",
    "close_time": "18:00",
    "working_days": [0, 1, 2, 3, 4, 5],  # Mon-Sat
}


def seed_business(session: Session, business: Business) -> None:
    """Default catalogue and weekly hours; the caller commits."""
    for name, (minutes, price) in DEFAULT_SERVICES.items():
        session.add(Service(
            business_id=business.id,
            name=name,
            duration_minutes=minutes,
            price=price,
        ))

    open_minute = parse_minute(shop_settings["open_time"])
    close_minute = parse_minute(shop_settings["close_time"])
    for day in range(7):
        session.add(WorkingHours(
            business_id=business.id,
            day_of_week=day,
            start_minute=open_minute,
            end_minute=close_minute,
            is_active=day in shop_settings["working_days"],
        ))
