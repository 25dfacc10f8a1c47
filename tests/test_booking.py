"""Booking operations against a real SQLite store."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from sqlmodel import Session, select

from scheduler import booking, store
from scheduler.admission import RejectionReason, check_admission, date_locks
from scheduler.config import settings
from scheduler.context import BusinessContext
from scheduler.errors import AdmissionConflict, InconsistentStateError, NotFound, ValidationError
from scheduler.intervals import TimeInterval, overlaps
from scheduler.models import Appointment, BusinessConstraint, DayLedger, WorkingHoursOverride
from scheduler.status import AppointmentStatus


def confirmed_on(session, business_id, on_date):
    session.expire_all()
    return session.exec(
        select(Appointment)
        .where(Appointment.business_id == business_id)
        .where(Appointment.date == on_date)
        .where(Appointment.status == AppointmentStatus.confirmed)
    ).all()


def test_available_slots_for_scenario_day(session, ctx, day, make_service, add_appointment):
    service = make_service(60)
    add_appointment(day, 600, 30, service.id)
    session.add(BusinessConstraint(business_id=ctx.business_id, date=day, start_minute=720, end_minute=780))
    session.commit()

    slots = booking.get_available_slots(session, ctx, day, service.id)

    assert [s.start_time for s in slots] == [540, 630, 645, 660] + list(range(780, 961, 15))
    assert slots[0].label == "09:00"
    assert slots[0].end_time == 600


def test_every_offered_slot_would_be_admitted(session, ctx, day, make_service, add_appointment):
    service = make_service(45)
    add_appointment(day, 615, 30, service.id)
    add_appointment(day, 700, 20, service.id, status=AppointmentStatus.cancelled)

    slots = booking.get_available_slots(session, ctx, day, service.id)
    resolved = booking.resolve(session, ctx, day)
    occupancy = store.load_occupancy(session, ctx.business_id, day)

    assert slots
    for slot in slots:
        assert check_admission(slot.start_time, 45, resolved, occupancy) is None


def test_closed_and_out_of_horizon_days(session, ctx, day, make_service):
    service = make_service(30)
    session.add(WorkingHoursOverride(business_id=ctx.business_id, date=day, intervals=[]))
    session.commit()

    assert booking.get_available_slots(session, ctx, day, service.id) == []

    with pytest.raises(ValidationError):
        booking.get_available_slots(session, ctx, ctx.today() - timedelta(days=1), service.id)
    with pytest.raises(ValidationError):
        booking.get_available_slots(session, ctx, ctx.last_bookable_date() + timedelta(days=1), service.id)


def test_unknown_service_is_not_found(session, ctx, day):
    with pytest.raises(NotFound):
        booking.get_available_slots(session, ctx, day, 9999)


def test_nearest_slots_skip_closed_days(session, ctx, day, make_service):
    service = make_service(30)
    session.add(WorkingHoursOverride(business_id=ctx.business_id, date=ctx.today(), intervals=[]))
    session.add(WorkingHoursOverride(business_id=ctx.business_id, date=day, intervals=[[600, 660]]))
    session.commit()

    nearest = booking.get_nearest_slots(session, ctx, service.id, limit=3)

    assert [(s.date, s.start_time) for s in nearest] == [(day, 600), (day, 615), (day, 630)]


def test_booking_confirms_and_occupies(session, ctx, day, make_service):
    service = make_service(30)

    result = booking.request_booking(session, ctx, day, 840, service.id, "a@example.com")

    assert result.accepted
    assert result.reason is None
    assert result.appointment.status == AppointmentStatus.confirmed
    assert result.appointment.end_minute == 870
    assert 840 not in [s.start_time for s in booking.get_available_slots(session, ctx, day, service.id)]
    assert store.read_ledger_version(session, ctx.business_id, day) == 1


def test_booking_rejections_return_reason(session, ctx, day, make_service, add_appointment):
    service = make_service(30)
    add_appointment(day, 600, 30, service.id)
    session.add(BusinessConstraint(business_id=ctx.business_id, date=day, start_minute=720, end_minute=780))
    session.commit()

    assert booking.request_booking(session, ctx, day, 615, service.id, "a@example.com").reason \
        == RejectionReason.slot_already_taken
    assert booking.request_booking(session, ctx, day, 730, service.id, "a@example.com").reason \
        == RejectionReason.constraint_blocked
    assert booking.request_booking(session, ctx, day, 1010, service.id, "a@example.com").reason \
        == RejectionReason.outside_working_hours
    assert len(confirmed_on(session, ctx.business_id, day)) == 1


def test_booking_in_the_past_is_invalid(session, ctx, make_service):
    service = make_service(30)
    with pytest.raises(ValidationError):
        booking.request_booking(session, ctx, ctx.today() - timedelta(days=1), 600, service.id, "a@example.com")
    if ctx.minute_now() > 0:
        with pytest.raises(ValidationError):
            booking.request_booking(session, ctx, ctx.today(), 0, service.id, "a@example.com")


def test_concurrent_requests_for_same_slot_admit_exactly_one(engine, ctx, day, make_service):
    service = make_service(30)
    barrier = threading.Barrier(2)
    results, errors = [], []

    def attempt(client_ref):
        with Session(engine) as s:
            barrier.wait()
            try:
                results.append(booking.request_booking(s, ctx, day, 840, service.id, client_ref))
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

    threads = [threading.Thread(target=attempt, args=(f"c{i}@example.com",)) for i in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    accepted = [r for r in results if r.accepted]
    rejected = [r for r in results if not r.accepted]
    assert len(accepted) == 1
    assert [r.reason for r in rejected] == [RejectionReason.slot_already_taken]


def test_concurrent_overlapping_requests_never_double_book(engine, session, ctx, day, make_service):
    service = make_service(30)
    starts = [600, 615, 630, 645, 600, 660, 675, 690]
    barrier = threading.Barrier(len(starts))
    errors = []

    def attempt(i, start):
        with Session(engine) as s:
            barrier.wait()
            try:
                booking.request_booking(s, ctx, day, start, service.id, f"c{i}@example.com")
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=attempt, args=(i, start)) for i, start in enumerate(starts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    booked = confirmed_on(session, ctx.business_id, day)
    assert booked
    intervals = [TimeInterval(a.start_minute, a.end_minute) for a in booked]
    for i, a in enumerate(intervals):
        for b in intervals[i + 1:]:
            assert not overlaps(a, b)


def test_lock_timeout_surfaces_as_conflict(monkeypatch, session, ctx, day, make_service):
    service = make_service(30)
    monkeypatch.setattr(settings, "ADMISSION_LOCK_TIMEOUT_SECONDS", 0.05)

    with date_locks.hold(ctx.business_id, day, timeout=1):
        with pytest.raises(AdmissionConflict):
            booking.request_booking(session, ctx, day, 600, service.id, "a@example.com")

    assert confirmed_on(session, ctx.business_id, day) == []


def test_stale_ledger_version_aborts_without_writing(monkeypatch, session, ctx, day, make_service):
    service = make_service(30)
    assert booking.request_booking(session, ctx, day, 540, service.id, "a@example.com").accepted

    # Pretend another process admitted between our read and our commit
    monkeypatch.setattr(store, "read_ledger_version", lambda *args: 0)
    with pytest.raises(AdmissionConflict):
        booking.request_booking(session, ctx, day, 600, service.id, "b@example.com")

    assert [a.start_minute for a in confirmed_on(session, ctx.business_id, day)] == [540]


def test_ledger_compare_and_commit(engine, session, business, day):
    store.bump_ledger(session, business.id, day, None)
    session.commit()

    with Session(engine) as other:
        store.bump_ledger(other, business.id, day, 1)
        other.commit()

    with pytest.raises(AdmissionConflict):
        store.bump_ledger(session, business.id, day, 1)
    session.rollback()

    assert session.get(DayLedger, (business.id, day)).version == 2


def test_overlapping_stored_appointments_refuse_service(session, ctx, day, make_service, add_appointment):
    service = make_service(30)
    add_appointment(day, 600, 30, service.id)
    add_appointment(day, 615, 30, service.id)

    with pytest.raises(InconsistentStateError):
        booking.get_available_slots(session, ctx, day, service.id)
    with pytest.raises(InconsistentStateError):
        booking.request_booking(session, ctx, day, 900, service.id, "a@example.com")


def test_cancel_is_idempotent_and_frees_time(session, ctx, day, make_service):
    service = make_service(30)
    appt = booking.request_booking(session, ctx, day, 600, service.id, "a@example.com").appointment

    first = booking.cancel_booking(session, ctx, appt.id)
    second = booking.cancel_booking(session, ctx, appt.id)

    assert first.status == second.status == AppointmentStatus.cancelled
    assert 600 in [s.start_time for s in booking.get_available_slots(session, ctx, day, service.id)]
    assert booking.request_booking(session, ctx, day, 600, service.id, "b@example.com").accepted


def test_status_changes_follow_transition_table(session, ctx, day, make_service):
    service = make_service(30)
    appt = booking.request_booking(session, ctx, day, 600, service.id, "a@example.com").appointment

    done = booking.change_status(session, ctx, appt.id, AppointmentStatus.completed)
    assert done.status == AppointmentStatus.completed

    with pytest.raises(ValidationError):
        booking.change_status(session, ctx, appt.id, AppointmentStatus.cancelled)


def test_appointment_of_other_business_is_not_found(session, ctx, day, make_service):
    service = make_service(30)
    appt = booking.request_booking(session, ctx, day, 600, service.id, "a@example.com").appointment
    other = BusinessContext(ctx.business_id + 1, ctx.timezone, ctx.slot_minutes, ctx.booking_horizon_days)

    with pytest.raises(NotFound):
        booking.cancel_booking(session, other, appt.id)
