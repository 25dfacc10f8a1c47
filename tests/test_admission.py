"""Admission checks, status transitions and the per-date lock."""

from __future__ import annotations

import threading
from datetime import date

import pytest

from scheduler.admission import DateLockRegistry, RejectionReason, check_admission
from scheduler.errors import AdmissionConflict, InvalidTransition
from scheduler.intervals import TimeInterval
from scheduler.occupancy import build_occupancy
from scheduler.resolver import WorkingHoursRule, resolve_day
from scheduler.status import AppointmentStatus, can_transition, ensure_transition

MONDAY = date(2030, 1, 7)


@pytest.fixture
def day():
    rule = WorkingHoursRule(day_of_week=0, start=540, end=1020, breaks=(TimeInterval(900, 915),))
    return resolve_day(MONDAY, [rule], [TimeInterval(720, 780)], 15)


@pytest.fixture
def occupancy():
    return build_occupancy([TimeInterval(600, 630)])


def test_free_request_is_admitted(day, occupancy):
    assert check_admission(840, 30, day, occupancy) is None


@pytest.mark.parametrize(
    "start,duration,reason",
    [
        (600, 0, RejectionReason.invalid_duration),
        (600, -15, RejectionReason.invalid_duration),
        (600, 2000, RejectionReason.invalid_duration),
        (510, 60, RejectionReason.outside_working_hours),
        (1000, 30, RejectionReason.outside_working_hours),
        (890, 30, RejectionReason.outside_working_hours),  # runs into the break
        (1430, 30, RejectionReason.outside_working_hours),
        (700, 30, RejectionReason.constraint_blocked),
        (615, 30, RejectionReason.slot_already_taken),
        (570, 60, RejectionReason.slot_already_taken),
    ],
)
def test_rejection_reasons(day, occupancy, start, duration, reason):
    assert check_admission(start, duration, day, occupancy) == reason


def test_touching_an_existing_appointment_is_fine(day, occupancy):
    assert check_admission(630, 30, day, occupancy) is None
    assert check_admission(570, 30, day, occupancy) is None


def test_waitlist_is_offered_only_for_taken_or_blocked_time():
    assert RejectionReason.slot_already_taken.waitlist_offered
    assert RejectionReason.constraint_blocked.waitlist_offered
    assert not RejectionReason.outside_working_hours.waitlist_offered
    assert not RejectionReason.invalid_duration.waitlist_offered


def test_status_transitions():
    assert can_transition(AppointmentStatus.pending, AppointmentStatus.confirmed)
    assert can_transition(AppointmentStatus.confirmed, AppointmentStatus.completed)
    assert can_transition(AppointmentStatus.confirmed, AppointmentStatus.no_show)
    assert not can_transition(AppointmentStatus.completed, AppointmentStatus.cancelled)
    assert not can_transition(AppointmentStatus.cancelled, AppointmentStatus.confirmed)
    assert not can_transition(AppointmentStatus.pending, AppointmentStatus.completed)

    with pytest.raises(InvalidTransition):
        ensure_transition(AppointmentStatus.no_show, AppointmentStatus.confirmed)


def test_lock_times_out_while_same_date_is_held():
    registry = DateLockRegistry()
    with registry.hold(1, MONDAY, timeout=1):
        with pytest.raises(AdmissionConflict):
            with registry.hold(1, MONDAY, timeout=0.05):
                pass


def test_different_dates_and_businesses_do_not_contend():
    registry = DateLockRegistry()
    acquired = []

    def grab(business_id, on_date):
        with registry.hold(business_id, on_date, timeout=0.5):
            acquired.append((business_id, on_date))

    with registry.hold(1, MONDAY, timeout=1):
        threads = [
            threading.Thread(target=grab, args=(1, date(2030, 1, 8))),
            threading.Thread(target=grab, args=(2, MONDAY)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    assert sorted(acquired) == [(1, date(2030, 1, 8)), (2, MONDAY)]
