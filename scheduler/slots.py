# scheduler/slots.py

from typing import Iterable, List, Optional

from scheduler.errors import ValidationError
from scheduler.intervals import TimeInterval, merge, subtract
from scheduler.occupancy import OccupancySet


def generate(
    open_intervals: Iterable[TimeInterval],
    occupancy: OccupancySet,
    duration: int,
    granularity: int,
    not_before: Optional[int] = None,
) -> List[int]:
    """Start minutes at which an appointment of ``duration`` fits free.

    Each open interval has the occupancy subtracted; inside every free piece,
    candidates are emitted from the piece's start at ``granularity`` steps
    while the whole duration still fits. Nothing is reserved here.
    """
    if duration <= 0:
        raise ValidationError(f"duration must be positive, got {duration}")
    if granularity <= 0:
        raise ValidationError(f"granularity must be positive, got {granularity}")

    occupied = list(occupancy)
    starts = set()

    for interval in merge(open_intervals):
        for free in subtract(interval, occupied):
            current = free.start
            while current + duration <= free.end:
                if not_before is None or current >= not_before:
                    starts.add(current)
                current += granularity

    return sorted(starts)
