# scheduler/waitlist.py
"""Match waitlisted clients against time that just became free."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from scheduler.intervals import TimeInterval, overlaps, subtract
from scheduler.occupancy import OccupancySet
from scheduler.slots import generate


class TimePeriod(str, Enum):
    morning = "morning"
    afternoon = "afternoon"
    evening = "evening"
    any = "any"


TIME_PERIODS = {
    TimePeriod.morning: TimeInterval(7 * 60, 12 * 60),
    TimePeriod.afternoon: TimeInterval(12 * 60, 16 * 60),
    TimePeriod.evening: TimeInterval(16 * 60, 20 * 60),
    TimePeriod.any: TimeInterval(7 * 60, 20 * 60),
}


class WaitlistStatus(str, Enum):
    waiting = "waiting"
    contacted = "contacted"
    booked = "booked"
    cancelled = "cancelled"


@dataclass(frozen=True)
class WaitlistCandidate:
    entry_id: int
    created_at: datetime
    duration: int
    window: Optional[TimeInterval] = None  # None: TimePeriod.any


@dataclass(frozen=True)
class WaitlistMatch:
    entry_id: int
    start_minute: int


def find_matches(
    freed: TimeInterval,
    open_intervals: Iterable[TimeInterval],
    occupancy: OccupancySet,
    candidates: Iterable[WaitlistCandidate],
    granularity: int,
    not_before: Optional[int] = None,
) -> List[WaitlistMatch]:
    """Waitlist entries that could now book inside or around ``freed``.

    Only free stretches touching the freed interval are considered, clipped
    to each entry's desired window, never starting before ``not_before``.
    Results are first-come-first-served.
    """
    free_pieces = []
    for interval in open_intervals:
        for piece in subtract(interval, occupancy):
            if overlaps(piece, freed):
                free_pieces.append(piece)

    matches = []
    for candidate in sorted(candidates, key=lambda c: (c.created_at, c.entry_id)):
        window = candidate.window or TIME_PERIODS[TimePeriod.any]
        if not overlaps(window, freed):
            continue

        clipped = [p.intersection(window) for p in free_pieces]
        clipped = [p for p in clipped if p is not None]
        if not clipped:
            continue

        starts = generate(clipped, OccupancySet(), candidate.duration, granularity, not_before=not_before)
        if starts:
            matches.append(WaitlistMatch(entry_id=candidate.entry_id, start_minute=starts[0]))
    return matches
