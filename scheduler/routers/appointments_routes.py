# scheduler/routers/appointments_routes.py

from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlmodel import Session, select

from scheduler import booking
from scheduler.auth import get_current_user
from scheduler.context import BusinessContext
from scheduler.db import get_session
from scheduler.deps import get_business_context, get_owner_context, require_role
from scheduler.models import Appointment, Business
from scheduler.schemas import (
    AppointmentPublic,
    BookingCreate,
    BookingRejection,
    StatusChange,
)
from scheduler.status import AppointmentStatus

router = APIRouter(
    tags=["appointments"],
)

STATUS_FILTERS = ("booked", "cancelled", "all")


def appointment_out(appt: Appointment) -> dict:
    return {
        "id": appt.id,
        "business_id": appt.business_id,
        "service_id": appt.service_id,
        "client_ref": appt.client_ref,
        "date": appt.date,
        "start_time": appt.start_minute,
        "end_time": appt.end_minute,
        "duration": appt.duration,
        "status": appt.status,
    }


@router.post(
    "/businesses/{business_id}/appointments",
    response_model=AppointmentPublic,
    status_code=201,
    responses={409: {"model": BookingRejection}},
)
def request_booking(
    payload: BookingCreate,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_business_context),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")

    result = booking.request_booking(
        session, ctx, payload.date, payload.start_time, payload.service_id, current_user["email"]
    )
    if not result.accepted:
        return JSONResponse(
            status_code=409,
            content={"reason": result.reason.value, "waitlist_offered": result.reason.waitlist_offered},
        )
    return appointment_out(result.appointment)


def _context_for_appointment(session: Session, appt_id: int) -> BusinessContext:
    appt = session.get(Appointment, appt_id)
    if appt is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return BusinessContext.from_business(session.get(Business, appt.business_id))


@router.patch("/appointments/{appt_id}/cancel", response_model=AppointmentPublic)
def cancel_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    # 1) Find the appointment and its business
    ctx = _context_for_appointment(session, appt_id)
    target = session.get(Appointment, appt_id)

    # 2) Authorization: client who booked OR business owner
    business = session.get(Business, ctx.business_id)
    user_email = current_user["email"]
    if user_email != target.client_ref and user_email != business.owner_email:
        raise HTTPException(status_code=403, detail="Forbidden")

    # 3) Cancel (no-op when already cancelled) and notify the waitlist
    return appointment_out(booking.cancel_booking(session, ctx, appt_id))


@router.patch("/appointments/{appt_id}/status", response_model=AppointmentPublic)
def change_appointment_status(
    appt_id: int,
    payload: StatusChange,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    return appointment_out(booking.change_status(session, ctx, appt_id, payload.status))


def _filter_status(stmt, status: str):
    if status not in STATUS_FILTERS:
        raise HTTPException(status_code=422, detail="status must be 'booked', 'cancelled', or 'all'")
    if status == "booked":
        stmt = stmt.where(Appointment.status.in_([AppointmentStatus.pending, AppointmentStatus.confirmed]))
    elif status == "cancelled":
        stmt = stmt.where(Appointment.status == AppointmentStatus.cancelled)
    return stmt


@router.get("/businesses/me/appointments", response_model=List[AppointmentPublic])
def list_business_appointments(
    status: Optional[str] = "booked",
    on_date: Optional[date] = None,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    stmt = select(Appointment).where(Appointment.business_id == ctx.business_id)
    if on_date is not None:
        stmt = stmt.where(Appointment.date == on_date)
    stmt = _filter_status(stmt, status)
    stmt = stmt.order_by(Appointment.date, Appointment.start_minute)

    return [appointment_out(a) for a in session.exec(stmt).all()]


@router.get("/clients/me/appointments", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: Optional[str] = "booked",
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")

    stmt = select(Appointment).where(Appointment.client_ref == current_user["email"])
    stmt = _filter_status(stmt, status)
    stmt = stmt.order_by(Appointment.date, Appointment.start_minute)

    return [appointment_out(a) for a in session.exec(stmt).all()]
