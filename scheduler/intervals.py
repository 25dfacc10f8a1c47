# scheduler/intervals.py
"""Half-open minute intervals on a single calendar date.

Times are minute offsets from midnight (0..1440). An interval covers
``[start, end)``, so 10:00-10:30 and 10:30-11:00 touch without overlapping.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from scheduler.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class TimeInterval:
    start: int
    end: int

    def __post_init__(self):
        if not isinstance(self.start, int) or not isinstance(self.end, int):
            raise ValidationError(f"interval bounds must be whole minutes, got {self.start!r}-{self.end!r}")
        if self.start >= self.end:
            raise ValidationError(f"interval start must be before end, got {self.start}-{self.end}")
        if self.start < 0 or self.end > MINUTES_PER_DAY:
            raise ValidationError(f"interval {self.start}-{self.end} is not within a single day")

    @classmethod
    def from_duration(cls, start: int, duration: int) -> "TimeInterval":
        return cls(start, start + duration)

    @property
    def length(self) -> int:
        return self.end - self.start

    def contains(self, other: "TimeInterval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def intersection(self, other: "TimeInterval") -> Optional["TimeInterval"]:
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start >= end:
            return None
        return TimeInterval(start, end)

    def __str__(self) -> str:
        return f"{format_minute(self.start)}-{format_minute(self.end)}"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.start < b.end and b.start < a.end


def merge(intervals: Iterable[TimeInterval]) -> List[TimeInterval]:
    """Coalesce overlapping or adjacent intervals into a minimal sorted list."""
    ordered = sorted(intervals)
    if not ordered:
        return []

    merged = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeInterval(last.start, current.end)
        else:
            merged.append(current)
    return merged


def subtract(open_interval: TimeInterval, blocked: Iterable[TimeInterval]) -> List[TimeInterval]:
    """Remove every blocked interval from ``open_interval``.

    Returns the remaining pieces in chronological order (zero, one or more).
    """
    remaining = []
    cursor = open_interval.start

    for block in merge(blocked):
        if block.end <= cursor:
            continue
        if block.start >= open_interval.end:
            break
        if block.start > cursor:
            remaining.append(TimeInterval(cursor, block.start))
        cursor = max(cursor, block.end)
        if cursor >= open_interval.end:
            break

    if cursor < open_interval.end:
        remaining.append(TimeInterval(cursor, open_interval.end))
    return remaining


def subtract_all(open_intervals: Iterable[TimeInterval], blocked: Iterable[TimeInterval]) -> List[TimeInterval]:
    blocked = merge(blocked)
    result = []
    for interval in merge(open_intervals):
        result.extend(subtract(interval, blocked))
    return result


def parse_minute(value: str) -> int:
    """'HH:MM' or 'HH:MM:SS' -> minutes since midnight. '24:00' is end of day."""
    parts = str(value).split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        raise ValidationError(f"invalid time {value!r}, expected HH:MM")
    total = hours * 60 + minutes
    if minutes < 0 or minutes > 59 or total < 0 or total > MINUTES_PER_DAY:
        raise ValidationError(f"invalid time {value!r}, expected HH:MM")
    return total


def format_minute(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"
