# scheduler/store.py
"""Reads and writes the booking core needs from the database."""

from datetime import date, datetime
from typing import List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from scheduler.errors import AdmissionConflict, NotFound, PersistenceFailure
from scheduler.intervals import TimeInterval
from scheduler.models import (
    Appointment,
    BusinessConstraint,
    DayLedger,
    Service,
    WaitlistEntry,
    WorkingHours,
    WorkingHoursOverride,
)
from scheduler.occupancy import OccupancySet, build_occupancy
from scheduler.resolver import DateOverride, WorkingHoursRule
from scheduler.status import OCCUPYING
from scheduler.waitlist import WaitlistStatus


def load_rules(session: Session, business_id: int) -> List[WorkingHoursRule]:
    rows = session.exec(
        select(WorkingHours)
        .where(WorkingHours.business_id == business_id)
        .order_by(WorkingHours.day_of_week)
    ).all()
    return [to_rule(row) for row in rows]


def to_rule(row: WorkingHours) -> WorkingHoursRule:
    return WorkingHoursRule(
        day_of_week=row.day_of_week,
        start=row.start_minute,
        end=row.end_minute,
        breaks=tuple(TimeInterval(b[0], b[1]) for b in row.breaks or []),
        is_active=row.is_active,
        slot_minutes=row.slot_minutes,
    )


def load_override(session: Session, business_id: int, on_date: date) -> Optional[DateOverride]:
    row = session.exec(
        select(WorkingHoursOverride)
        .where(WorkingHoursOverride.business_id == business_id)
        .where(WorkingHoursOverride.date == on_date)
    ).first()
    if row is None:
        return None
    return DateOverride(
        on_date=row.date,
        intervals=tuple(TimeInterval(i[0], i[1]) for i in row.intervals or []),
    )


def load_constraints(session: Session, business_id: int, start: date, end: Optional[date] = None) -> Sequence[BusinessConstraint]:
    stmt = select(BusinessConstraint).where(BusinessConstraint.business_id == business_id)
    if end is None:
        stmt = stmt.where(BusinessConstraint.date == start)
    else:
        stmt = stmt.where(BusinessConstraint.date >= start).where(BusinessConstraint.date <= end)
    stmt = stmt.order_by(BusinessConstraint.date, BusinessConstraint.start_minute)
    return session.exec(stmt).all()


def constraint_intervals(rows: Sequence[BusinessConstraint]) -> List[TimeInterval]:
    return [TimeInterval(c.start_minute, c.end_minute) for c in rows]


def load_occupancy(session: Session, business_id: int, on_date: date) -> OccupancySet:
    """Fresh occupancy for the date. Raises InconsistentStateError on overlap."""
    rows = session.exec(
        select(Appointment)
        .where(Appointment.business_id == business_id)
        .where(Appointment.date == on_date)
        .where(Appointment.status.in_(list(OCCUPYING)))
    ).all()
    return build_occupancy(TimeInterval(a.start_minute, a.end_minute) for a in rows)


def get_service(session: Session, business_id: int, service_id: int) -> Service:
    service = session.get(Service, service_id)
    if service is None or service.business_id != business_id or not service.is_active:
        raise NotFound(f"service {service_id} not found")
    return service


def get_appointment(session: Session, business_id: int, appointment_id: int) -> Appointment:
    appt = session.get(Appointment, appointment_id)
    if appt is None or appt.business_id != business_id:
        raise NotFound(f"appointment {appointment_id} not found")
    return appt


def active_waitlist(session: Session, business_id: int, on_date: date, now: datetime) -> Sequence[WaitlistEntry]:
    return session.exec(
        select(WaitlistEntry)
        .where(WaitlistEntry.business_id == business_id)
        .where(WaitlistEntry.date == on_date)
        .where(WaitlistEntry.status == WaitlistStatus.waiting)
        .where(WaitlistEntry.expires_at > now)
        .order_by(WaitlistEntry.created_at, WaitlistEntry.id)
    ).all()


def read_ledger_version(session: Session, business_id: int, on_date: date) -> Optional[int]:
    row = session.exec(
        select(DayLedger)
        .where(DayLedger.business_id == business_id)
        .where(DayLedger.date == on_date)
    ).first()
    return row.version if row is not None else None


def bump_ledger(session: Session, business_id: int, on_date: date, seen_version: Optional[int]) -> None:
    """Compare-and-commit marker: succeeds only if nobody admitted since the read."""
    if seen_version is None:
        session.add(DayLedger(business_id=business_id, date=on_date, version=1))
        return

    result = session.connection().execute(
        update(DayLedger)
        .where(DayLedger.business_id == business_id)
        .where(DayLedger.date == on_date)
        .where(DayLedger.version == seen_version)
        .values(version=seen_version + 1)
    )
    if result.rowcount != 1:
        raise AdmissionConflict(f"bookings for {on_date.isoformat()} changed while admitting, try again")


def commit(session: Session) -> None:
    """Commit the unit of work, turning store errors into the core's taxonomy."""
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise AdmissionConflict("conflicting write detected at commit") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise PersistenceFailure("could not save changes") from exc


def waitlist_dates(session: Session, business_id: int, start: date, now: datetime) -> List[date]:
    """Dates from ``start`` on that still have live waiting entries."""
    rows = session.exec(
        select(WaitlistEntry.date)
        .where(WaitlistEntry.business_id == business_id)
        .where(WaitlistEntry.date >= start)
        .where(WaitlistEntry.status == WaitlistStatus.waiting)
        .where(WaitlistEntry.expires_at > now)
        .distinct()
        .order_by(WaitlistEntry.date)
    ).all()
    return list(rows)
