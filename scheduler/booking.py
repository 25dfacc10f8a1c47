# scheduler/booking.py
"""Availability and booking operations exposed to the routers.

Every operation takes the request's ``Session`` and an explicit
``BusinessContext``; nothing here reads the current tenant from global state.
Slot lookups are advisory and take no locks. ``request_booking`` is the only
writer of new appointments and runs its read-check-write under the
per-(business, date) lock plus the day-ledger compare-and-commit.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session, select

from scheduler import store
from scheduler.admission import RejectionReason, check_admission, date_locks
from scheduler.config import settings
from scheduler.context import BusinessContext
from scheduler.errors import AlreadyExists, NotFound, ValidationError
from scheduler.intervals import TimeInterval, format_minute, subtract_all
from scheduler.models import Appointment, BusinessConstraint, Notification, Service, WaitlistEntry, utcnow
from scheduler.resolver import ResolvedDay, resolve_day
from scheduler.slots import generate
from scheduler.status import AppointmentStatus, ensure_transition
from scheduler.waitlist import (
    TIME_PERIODS,
    TimePeriod,
    WaitlistCandidate,
    WaitlistMatch,
    WaitlistStatus,
    find_matches,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    date: date
    start_time: int
    end_time: int
    available: bool = True

    @property
    def label(self) -> str:
        return format_minute(self.start_time)


@dataclass(frozen=True)
class AdmissionResult:
    appointment: Optional[Appointment] = None
    reason: Optional[RejectionReason] = None

    @property
    def accepted(self) -> bool:
        return self.appointment is not None


def resolve(session: Session, ctx: BusinessContext, on_date: date) -> ResolvedDay:
    rules = store.load_rules(session, ctx.business_id)
    override = store.load_override(session, ctx.business_id, on_date)
    constraints = store.constraint_intervals(store.load_constraints(session, ctx.business_id, on_date))
    return resolve_day(on_date, rules, constraints, ctx.slot_minutes, override)


def _slots_for_day(session: Session, ctx: BusinessContext, on_date: date, service: Service) -> List[TimeSlot]:
    day = resolve(session, ctx, on_date)
    if day.is_closed:
        return []

    occupancy = store.load_occupancy(session, ctx.business_id, on_date)
    starts = generate(
        day.open,
        occupancy,
        service.duration_minutes,
        day.granularity,
        not_before=ctx.not_before(on_date),
    )
    return [TimeSlot(on_date, s, s + service.duration_minutes) for s in starts]


def get_available_slots(session: Session, ctx: BusinessContext, on_date: date, service_id: int) -> List[TimeSlot]:
    """Bookable start times for ``service_id`` on ``on_date``. Empty when none."""
    ctx.ensure_bookable_date(on_date)
    service = store.get_service(session, ctx.business_id, service_id)
    return _slots_for_day(session, ctx, on_date, service)


def get_nearest_slots(session: Session, ctx: BusinessContext, service_id: int, limit: int = 3) -> List[TimeSlot]:
    """The first ``limit`` bookable slots from today to the end of the horizon."""
    if limit <= 0:
        raise ValidationError("limit must be positive")

    service = store.get_service(session, ctx.business_id, service_id)
    found: List[TimeSlot] = []
    current = ctx.today()
    last = ctx.last_bookable_date()

    while current <= last and len(found) < limit:
        found.extend(_slots_for_day(session, ctx, current, service))
        current += timedelta(days=1)

    return found[:limit]


def request_booking(
    session: Session,
    ctx: BusinessContext,
    on_date: date,
    start_minute: int,
    service_id: int,
    client_ref: str,
) -> AdmissionResult:
    """Admit or reject one booking request. Single attempt, no retries.

    Expected availability problems come back as ``AdmissionResult.reason``;
    only malformed input, missing records and store failures raise.
    """
    # 1) Validate request
    ctx.ensure_bookable_date(on_date)
    service = store.get_service(session, ctx.business_id, service_id)
    not_before = ctx.not_before(on_date)
    if not_before is not None and start_minute < not_before:
        raise ValidationError("Cannot book an appointment in the past")

    with date_locks.hold(ctx.business_id, on_date, settings.ADMISSION_LOCK_TIMEOUT_SECONDS):
        # 2) Fresh read; never trust what the caller saw at offer time
        session.expire_all()
        seen_version = store.read_ledger_version(session, ctx.business_id, on_date)
        day = resolve(session, ctx, on_date)
        occupancy = store.load_occupancy(session, ctx.business_id, on_date)

        # 3) Check
        reason = check_admission(start_minute, service.duration_minutes, day, occupancy)
        if reason is not None:
            logger.info(
                "Rejected booking business=%s date=%s start=%s service=%s: %s",
                ctx.business_id, on_date, start_minute,
                service.id, reason.value,
            )
            session.rollback()
            return AdmissionResult(reason=reason)

        # 4) Create and commit as one unit of work
        appt = Appointment(
            business_id=ctx.business_id,
            service_id=service.id,
            client_ref=client_ref,
            date=on_date,
            start_minute=start_minute,
            duration=service.duration_minutes,
            status=AppointmentStatus.confirmed,
        )
        session.add(appt)
        _mark_waitlist_booked(session, ctx, on_date, client_ref)
        try:
            store.bump_ledger(session, ctx.business_id, on_date, seen_version)
        except Exception:
            session.rollback()
            raise
        store.commit(session)
        session.refresh(appt)

    logger.info(
        "Confirmed appointment id=%s business=%s date=%s %s",
        appt.id, ctx.business_id, on_date, TimeInterval(appt.start_minute, appt.end_minute),
    )
    return AdmissionResult(appointment=appt)


def _mark_waitlist_booked(session: Session, ctx: BusinessContext, on_date: date, client_ref: str) -> None:
    entries = session.exec(
        select(WaitlistEntry)
        .where(WaitlistEntry.business_id == ctx.business_id)
        .where(WaitlistEntry.date == on_date)
        .where(WaitlistEntry.client_ref == client_ref)
        .where(WaitlistEntry.status.in_([WaitlistStatus.waiting, WaitlistStatus.contacted]))
    ).all()
    for entry in entries:
        entry.status = WaitlistStatus.booked
        session.add(entry)


def cancel_booking(session: Session, ctx: BusinessContext, appointment_id: int) -> Appointment:
    """Cancel an appointment and offer the freed time to the waitlist.

    Cancelling an already cancelled appointment changes nothing.
    """
    appt = store.get_appointment(session, ctx.business_id, appointment_id)
    if appt.status == AppointmentStatus.cancelled:
        return appt

    ensure_transition(appt.status, AppointmentStatus.cancelled)
    appt.status = AppointmentStatus.cancelled
    appt.updated_at = utcnow()
    session.add(appt)
    store.commit(session)
    session.refresh(appt)
    logger.info("Cancelled appointment id=%s business=%s date=%s", appt.id, ctx.business_id, appt.date)

    notify_freed_interval(session, ctx, appt.date, TimeInterval(appt.start_minute, appt.end_minute))
    return appt


def change_status(session: Session, ctx: BusinessContext, appointment_id: int, target: AppointmentStatus) -> Appointment:
    target = AppointmentStatus(target)
    if target == AppointmentStatus.cancelled:
        return cancel_booking(session, ctx, appointment_id)

    appt = store.get_appointment(session, ctx.business_id, appointment_id)
    ensure_transition(appt.status, target)
    appt.status = target
    appt.updated_at = utcnow()
    session.add(appt)
    store.commit(session)
    session.refresh(appt)
    logger.info("Appointment id=%s moved to %s", appt.id, target.value)
    return appt


def join_waitlist(
    session: Session,
    ctx: BusinessContext,
    on_date: date,
    service_id: int,
    client_ref: str,
    window: Optional[TimeInterval] = None,
    period: Optional[TimePeriod] = None,
) -> WaitlistEntry:
    ctx.ensure_bookable_date(on_date)
    service = store.get_service(session, ctx.business_id, service_id)

    if window is None and period is not None and period != TimePeriod.any:
        window = TIME_PERIODS[TimePeriod(period)]
    if window is not None and window.length < service.duration_minutes:
        raise ValidationError("desired window is shorter than the service")

    existing = session.exec(
        select(WaitlistEntry)
        .where(WaitlistEntry.business_id == ctx.business_id)
        .where(WaitlistEntry.date == on_date)
        .where(WaitlistEntry.client_ref == client_ref)
        .where(WaitlistEntry.status == WaitlistStatus.waiting)
        .where(WaitlistEntry.expires_at > utcnow())
    ).first()
    if existing is not None:
        raise AlreadyExists(f"already on the waitlist for {on_date.isoformat()}")

    created_at = utcnow()
    entry = WaitlistEntry(
        business_id=ctx.business_id,
        date=on_date,
        desired_start=window.start if window else None,
        desired_end=window.end if window else None,
        service_id=service.id,
        client_ref=client_ref,
        created_at=created_at,
        expires_at=created_at + timedelta(hours=settings.WAITLIST_TTL_HOURS),
    )
    session.add(entry)
    store.commit(session)
    session.refresh(entry)
    logger.info("Waitlist entry id=%s for %s on %s", entry.id, client_ref, on_date)
    return entry


def leave_waitlist(session: Session, ctx: BusinessContext, entry_id: int, client_ref: str) -> WaitlistEntry:
    entry = session.get(WaitlistEntry, entry_id)
    if entry is None or entry.business_id != ctx.business_id or entry.client_ref != client_ref:
        raise NotFound(f"waitlist entry {entry_id} not found")
    if entry.status != WaitlistStatus.cancelled:
        entry.status = WaitlistStatus.cancelled
        session.add(entry)
        store.commit(session)
        session.refresh(entry)
    return entry


def remove_constraint(session: Session, ctx: BusinessContext, constraint_id: int) -> List[WaitlistMatch]:
    row = session.get(BusinessConstraint, constraint_id)
    if row is None or row.business_id != ctx.business_id:
        raise NotFound(f"constraint {constraint_id} not found")

    on_date = row.date
    freed = TimeInterval(row.start_minute, row.end_minute)
    session.delete(row)
    store.commit(session)
    logger.info("Removed constraint id=%s business=%s date=%s %s", constraint_id, ctx.business_id, on_date, freed)

    return notify_freed_interval(session, ctx, on_date, freed)


def notify_freed_interval(session: Session, ctx: BusinessContext, on_date: date, freed: TimeInterval) -> List[WaitlistMatch]:
    """Surface waitlist entries that now fit; writes one notification each.

    Proposes only. Booking still goes through ``request_booking``.
    """
    if on_date < ctx.today():
        return []

    entries = store.active_waitlist(session, ctx.business_id, on_date, utcnow())
    if not entries:
        return []

    services = {}
    candidates = []
    for entry in entries:
        service = session.get(Service, entry.service_id)
        if service is None or not service.is_active:
            continue
        services[entry.id] = service
        window = None
        if entry.desired_start is not None and entry.desired_end is not None:
            window = TimeInterval(entry.desired_start, entry.desired_end)
        candidates.append(WaitlistCandidate(entry.id, entry.created_at, service.duration_minutes, window))

    day = resolve(session, ctx, on_date)
    occupancy = store.load_occupancy(session, ctx.business_id, on_date)
    matches = find_matches(
        freed, day.open, occupancy, candidates, day.granularity,
        not_before=ctx.not_before(on_date),
    )
    if not matches:
        return []

    by_id = {e.id: e for e in entries}
    for match in matches:
        entry = by_id[match.entry_id]
        service = services[match.entry_id]
        session.add(Notification(
            recipient_ref=entry.client_ref,
            title="A slot opened up",
            content=(
                f"{service.name} is now available on {on_date.isoformat()} "
                f"at {format_minute(match.start_minute)}. Book it before it is taken."
            ),
            waitlist_entry_id=entry.id,
        ))
        entry.status = WaitlistStatus.contacted
        session.add(entry)
    store.commit(session)

    logger.info(
        "Offered freed %s on %s to %d waitlist entr%s",
        freed, on_date, len(matches), "y" if len(matches) == 1 else "ies",
    )
    return matches


def open_hours_snapshot(session: Session, ctx: BusinessContext, dates: Iterable[date]) -> Dict[date, List[TimeInterval]]:
    """Open intervals per date, taken before an hours or override change."""
    return {on_date: list(resolve(session, ctx, on_date).open) for on_date in dates}


def notify_reopened_hours(
    session: Session,
    ctx: BusinessContext,
    before: Dict[date, List[TimeInterval]],
) -> List[WaitlistMatch]:
    """Offer time that an hours or override change opened up.

    Compares each date's open intervals now against ``before`` and runs every
    newly opened piece through ``notify_freed_interval``.
    """
    matches: List[WaitlistMatch] = []
    for on_date, previous in sorted(before.items()):
        current = resolve(session, ctx, on_date).open
        for piece in subtract_all(current, previous):
            matches.extend(notify_freed_interval(session, ctx, on_date, piece))
    return matches
