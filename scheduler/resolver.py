# scheduler/resolver.py
"""Working hours and business constraints -> open intervals for a date."""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from scheduler.intervals import TimeInterval, merge, subtract, subtract_all


@dataclass(frozen=True)
class WorkingHoursRule:
    day_of_week: int  # 0=Mon, 1=Tues....
    start: int
    end: int
    breaks: Tuple[TimeInterval, ...] = ()
    is_active: bool = True
    slot_minutes: Optional[int] = None

    def intervals(self) -> List[TimeInterval]:
        if not self.is_active:
            return []
        return subtract(TimeInterval(self.start, self.end), self.breaks)


@dataclass(frozen=True)
class DateOverride:
    """Replaces the weekday rule for one date. No intervals means closed."""

    on_date: date
    intervals: Tuple[TimeInterval, ...] = ()


@dataclass(frozen=True)
class ResolvedDay:
    on_date: date
    working: Tuple[TimeInterval, ...]
    open: Tuple[TimeInterval, ...]
    granularity: int
    blocked: Tuple[TimeInterval, ...] = field(default=())

    @property
    def is_closed(self) -> bool:
        return not self.open

    def within_working_hours(self, interval: TimeInterval) -> bool:
        return any(w.contains(interval) for w in self.working)

    def within_open_hours(self, interval: TimeInterval) -> bool:
        return any(o.contains(interval) for o in self.open)


def working_intervals(
    on_date: date,
    rules: Iterable[WorkingHoursRule],
    override: Optional[DateOverride] = None,
) -> List[TimeInterval]:
    if override is not None:
        return merge(override.intervals)

    weekday = on_date.weekday()
    intervals = []
    for rule in rules:
        if rule.day_of_week == weekday:
            intervals.extend(rule.intervals())
    return merge(intervals)


def granularity_for(on_date: date, rules: Iterable[WorkingHoursRule], default: int) -> int:
    weekday = on_date.weekday()
    for rule in rules:
        if rule.day_of_week == weekday and rule.is_active and rule.slot_minutes:
            return rule.slot_minutes
    return default


def resolve_day(
    on_date: date,
    rules: Sequence[WorkingHoursRule],
    constraints: Iterable[TimeInterval],
    default_granularity: int,
    override: Optional[DateOverride] = None,
) -> ResolvedDay:
    """Open intervals for ``on_date``: working hours minus every constraint.

    A constraint covering the whole working day leaves no open intervals;
    that is a closed day, not an error.
    """
    working = working_intervals(on_date, rules, override)
    blocked = merge(constraints)
    return ResolvedDay(
        on_date=on_date,
        working=tuple(working),
        open=tuple(subtract_all(working, blocked)),
        granularity=granularity_for(on_date, rules, default_granularity),
        blocked=tuple(blocked),
    )
