# scheduler/occupancy.py

import logging
from bisect import bisect_right
from typing import Iterable, Iterator, List, Tuple

from scheduler.errors import InconsistentStateError
from scheduler.intervals import TimeInterval, overlaps

logger = logging.getLogger(__name__)


class OccupancySet:
    """Time already consumed by non-cancelled appointments on one date.

    Members are sorted and never overlap. Built fresh for every admission
    check, never shared across requests.
    """

    def __init__(self, intervals: Iterable[TimeInterval] = ()):
        self._intervals: Tuple[TimeInterval, ...] = tuple(intervals)
        self._starts = [i.start for i in self._intervals]

    def __iter__(self) -> Iterator[TimeInterval]:
        return iter(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def __eq__(self, other) -> bool:
        return isinstance(other, OccupancySet) and self._intervals == other._intervals

    def __repr__(self) -> str:
        return f"OccupancySet({[str(i) for i in self._intervals]})"

    @property
    def intervals(self) -> List[TimeInterval]:
        return list(self._intervals)

    def conflicts_with(self, interval: TimeInterval) -> bool:
        # Members are disjoint: if any member overlaps, the last one starting
        # before interval.end does too.
        idx = bisect_right(self._starts, interval.end - 1) - 1
        if idx < 0:
            return False
        return overlaps(self._intervals[idx], interval)


def build_occupancy(intervals: Iterable[TimeInterval]) -> OccupancySet:
    """Merge occupied intervals, failing closed if any two of them overlap."""
    ordered = sorted(intervals)
    merged: List[TimeInterval] = []
    for current in ordered:
        if merged and overlaps(merged[-1], current):
            logger.error("Overlapping appointments in store: %s and %s", merged[-1], current)
            raise InconsistentStateError(
                f"occupied intervals {merged[-1]} and {current} overlap"
            )
        if merged and merged[-1].end == current.start:
            merged[-1] = TimeInterval(merged[-1].start, current.end)
        else:
            merged.append(current)
    return OccupancySet(merged)
