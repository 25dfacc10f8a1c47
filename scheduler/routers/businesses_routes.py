# scheduler/routers/businesses_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from scheduler import booking
from scheduler.auth import get_current_user
from scheduler.config import settings
from scheduler.context import BusinessContext, zone
from scheduler.data import seed_business
from scheduler.db import get_session
from scheduler.deps import get_business_context, get_owner_context, require_role
from scheduler.intervals import TimeInterval, merge
from scheduler.models import (
    Business,
    BusinessConstraint,
    Service,
    WorkingHours,
    WorkingHoursOverride,
    utcnow,
)
from scheduler.schemas import (
    BusinessCreate,
    BusinessPublic,
    ConstraintCreate,
    ConstraintPublic,
    OverrideIn,
    OverridePublic,
    ServiceCreate,
    ServicePublic,
    WorkingHoursDay,
    WorkingHoursSchedule,
)
from scheduler.store import load_constraints, waitlist_dates

router = APIRouter(
    prefix="/businesses",
    tags=["businesses"],
)


@router.post("", response_model=BusinessPublic, status_code=201)
def create_business(
    payload: BusinessCreate,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "business")  # only owners can create
    email = current_user["email"]

    existing = session.exec(select(Business).where(Business.owner_email == email)).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Business already exists for this owner")

    tz_name = payload.timezone or settings.DEFAULT_TIMEZONE
    zone(tz_name)  # raises ValidationError for unknown names

    business = Business(
        owner_email=email,
        name=payload.name,
        timezone=tz_name,
        slot_minutes=payload.slot_minutes or settings.DEFAULT_SLOT_MINUTES,
        booking_horizon_days=(
            payload.booking_horizon_days
            if payload.booking_horizon_days is not None
            else settings.BOOKING_HORIZON_DAYS
        ),
    )
    session.add(business)
    session.flush()  # fills business.id for the seed rows
    if payload.seed_defaults:
        seed_business(session, business)
    session.commit()
    session.refresh(business)
    return business


@router.get("/{business_id}", response_model=BusinessPublic)
def get_business(
    business_id: int,
    session: Session = Depends(get_session),
):
    business = session.get(Business, business_id)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")
    return business


# Working hours

def _day_out(row: WorkingHours) -> dict:
    return {
        "day_of_week": row.day_of_week,
        "start_minute": row.start_minute,
        "end_minute": row.end_minute,
        "breaks": [{"start": b[0], "end": b[1]} for b in row.breaks or []],
        "is_active": row.is_active,
        "slot_minutes": row.slot_minutes,
    }


@router.put("/me/hours", response_model=WorkingHoursSchedule)
def set_working_hours(
    schedule: WorkingHoursSchedule,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    days = [d.day_of_week for d in schedule.days]
    if len(days) != len(set(days)):
        raise HTTPException(status_code=422, detail="days cannot contain duplicates")

    for day in schedule.days:
        if day.start_minute >= day.end_minute:
            raise HTTPException(status_code=422, detail="start_minute must be before end_minute")
        for b in day.breaks:
            if b.start < day.start_minute or b.end > day.end_minute:
                raise HTTPException(status_code=422, detail="Breaks must be within working hours")

    # Open hours before the change, for dates someone is waiting on
    waiting = [
        d for d in waitlist_dates(session, ctx.business_id, ctx.today(), utcnow())
        if d.weekday() in set(days)
    ]
    before = booking.open_hours_snapshot(session, ctx, waiting)

    # DB upsert: one row per (business, weekday)
    for day in schedule.days:
        row = session.exec(
            select(WorkingHours)
            .where(WorkingHours.business_id == ctx.business_id)
            .where(WorkingHours.day_of_week == day.day_of_week)
        ).first()
        breaks = [[i.start, i.end] for i in merge(TimeInterval(b.start, b.end) for b in day.breaks)]
        if row is None:
            row = WorkingHours(business_id=ctx.business_id, day_of_week=day.day_of_week,
                               start_minute=day.start_minute, end_minute=day.end_minute)
        row.start_minute = day.start_minute
        row.end_minute = day.end_minute
        row.breaks = breaks
        row.is_active = day.is_active
        row.slot_minutes = day.slot_minutes
        session.add(row)

    session.commit()
    booking.notify_reopened_hours(session, ctx, before)
    return {"days": _all_days(session, ctx.business_id)}


def _all_days(session: Session, business_id: int) -> List[dict]:
    rows = session.exec(
        select(WorkingHours)
        .where(WorkingHours.business_id == business_id)
        .order_by(WorkingHours.day_of_week)
    ).all()
    return [_day_out(r) for r in rows]


@router.get("/{business_id}/hours", response_model=WorkingHoursSchedule)
def get_working_hours(
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_business_context),
):
    return {"days": _all_days(session, ctx.business_id)}


@router.put("/me/overrides/{on_date}", response_model=OverridePublic)
def set_override(
    on_date: date,
    payload: OverrideIn,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    intervals = merge(TimeInterval(i.start, i.end) for i in payload.intervals)
    before = booking.open_hours_snapshot(session, ctx, [on_date])

    row = session.exec(
        select(WorkingHoursOverride)
        .where(WorkingHoursOverride.business_id == ctx.business_id)
        .where(WorkingHoursOverride.date == on_date)
    ).first()
    if row is None:
        row = WorkingHoursOverride(business_id=ctx.business_id, date=on_date)
    row.intervals = [[i.start, i.end] for i in intervals]
    session.add(row)
    session.commit()
    booking.notify_reopened_hours(session, ctx, before)
    return {"date": on_date, "intervals": [{"start": i.start, "end": i.end} for i in intervals]}


@router.delete("/me/overrides/{on_date}", status_code=204)
def delete_override(
    on_date: date,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    row = session.exec(
        select(WorkingHoursOverride)
        .where(WorkingHoursOverride.business_id == ctx.business_id)
        .where(WorkingHoursOverride.date == on_date)
    ).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Override not found")
    before = booking.open_hours_snapshot(session, ctx, [on_date])
    session.delete(row)
    session.commit()
    booking.notify_reopened_hours(session, ctx, before)


# Constraints (closures, breaks, owner absence)

@router.post("/me/constraints", response_model=List[ConstraintPublic], status_code=201)
def create_constraints(
    entries: List[ConstraintCreate],
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    if not entries:
        raise HTTPException(status_code=422, detail="At least one constraint is required")

    rows = []
    for entry in entries:
        interval = TimeInterval(entry.start_minute, entry.end_minute)  # raises ValidationError
        row = BusinessConstraint(
            business_id=ctx.business_id,
            date=entry.date,
            start_minute=interval.start,
            end_minute=interval.end,
            reason=entry.reason,
        )
        session.add(row)
        rows.append(row)

    session.commit()
    for row in rows:
        session.refresh(row)
    return rows


@router.get("/me/constraints", response_model=List[ConstraintPublic])
def list_constraints(
    start: date,
    end: Optional[date] = None,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    if end is not None and end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")
    return load_constraints(session, ctx.business_id, start, end)


@router.delete("/me/constraints/{constraint_id}")
def delete_constraint(
    constraint_id: int,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    matches = booking.remove_constraint(session, ctx, constraint_id)
    return {"deleted": constraint_id, "waitlist_notified": [m.entry_id for m in matches]}


# Services

@router.post("/me/services", response_model=ServicePublic, status_code=201)
def create_service(
    payload: ServiceCreate,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    existing = session.exec(
        select(Service)
        .where(Service.business_id == ctx.business_id)
        .where(Service.name == payload.name)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Service already exists")

    service = Service(business_id=ctx.business_id, **payload.model_dump())
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@router.delete("/me/services/{service_id}", response_model=ServicePublic)
def deactivate_service(
    service_id: int,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    service = session.get(Service, service_id)
    if service is None or service.business_id != ctx.business_id:
        raise HTTPException(status_code=404, detail="Service not found")
    # Existing appointments keep pointing at it
    service.is_active = False
    session.add(service)
    session.commit()
    session.refresh(service)
    return service


@router.get("/{business_id}/services", response_model=List[ServicePublic])
def list_services(
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_business_context),
):
    return session.exec(
        select(Service)
        .where(Service.business_id == ctx.business_id)
        .where(Service.is_active == True)  # noqa: E712
        .order_by(Service.duration_minutes, Service.name)
    ).all()
