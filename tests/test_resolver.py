"""Working hours + constraints -> open intervals."""

from __future__ import annotations

from datetime import date

from scheduler.intervals import TimeInterval
from scheduler.resolver import DateOverride, WorkingHoursRule, resolve_day, working_intervals

MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


def rule(day: int, start: int = 540, end: int = 1020, **kwargs) -> WorkingHoursRule:
    return WorkingHoursRule(day_of_week=day, start=start, end=end, **kwargs)


def test_constraint_is_subtracted_from_working_hours():
    day = resolve_day(MONDAY, [rule(0)], [TimeInterval(720, 780)], 15)
    assert day.working == (TimeInterval(540, 1020),)
    assert day.open == (TimeInterval(540, 720), TimeInterval(780, 1020))
    assert day.granularity == 15
    assert not day.is_closed


def test_breaks_are_not_working_time():
    r = rule(0, breaks=(TimeInterval(720, 750), TimeInterval(900, 915)))
    assert working_intervals(MONDAY, [r]) == [
        TimeInterval(540, 720), TimeInterval(750, 900), TimeInterval(915, 1020),
    ]


def test_constraint_covering_the_day_closes_it():
    day = resolve_day(MONDAY, [rule(0)], [TimeInterval(0, 1440)], 15)
    assert day.open == ()
    assert day.is_closed


def test_overlapping_constraints_are_tolerated():
    day = resolve_day(
        MONDAY, [rule(0)],
        [TimeInterval(600, 700), TimeInterval(650, 720), TimeInterval(600, 700)],
        15,
    )
    assert day.open == (TimeInterval(540, 600), TimeInterval(720, 1020))


def test_other_weekday_and_inactive_rules_give_closed_day():
    assert resolve_day(TUESDAY, [rule(0)], [], 15).is_closed
    assert resolve_day(MONDAY, [rule(0, is_active=False)], [], 15).is_closed


def test_weekday_slot_minutes_overrides_default_granularity():
    assert resolve_day(MONDAY, [rule(0, slot_minutes=20)], [], 15).granularity == 20


def test_date_override_replaces_weekday_rule():
    override = DateOverride(MONDAY, (TimeInterval(600, 660), TimeInterval(900, 960)))
    day = resolve_day(MONDAY, [rule(0)], [TimeInterval(630, 640)], 15, override)
    assert day.working == (TimeInterval(600, 660), TimeInterval(900, 960))
    assert day.open == (TimeInterval(600, 630), TimeInterval(640, 660), TimeInterval(900, 960))


def test_empty_override_closes_date():
    assert resolve_day(MONDAY, [rule(0)], [], 15, DateOverride(MONDAY)).is_closed


def test_working_vs_open_membership():
    day = resolve_day(MONDAY, [rule(0)], [TimeInterval(720, 780)], 15)
    blocked = TimeInterval(730, 760)
    assert day.within_working_hours(blocked)
    assert not day.within_open_hours(blocked)
    assert not day.within_working_hours(TimeInterval(1000, 1030))
