# scheduler/routers/availability_routes.py

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from scheduler import booking
from scheduler.context import BusinessContext
from scheduler.db import get_session
from scheduler.deps import get_business_context
from scheduler.schemas import AvailabilityResponse, SlotPublic

router = APIRouter(
    prefix="/businesses",
    tags=["availability"],
)


def _slot_out(slot: booking.TimeSlot) -> dict:
    return {
        "date": slot.date,
        "start_time": slot.start_time,
        "end_time": slot.end_time,
        "label": slot.label,
        "available": slot.available,
    }


@router.get("/{business_id}/availability", response_model=AvailabilityResponse)
def business_availability(
    date: date,
    service_id: int,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_business_context),
):
    # Advisory only: the booking request re-checks everything
    slots = booking.get_available_slots(session, ctx, date, service_id)
    return {
        "business_id": ctx.business_id,
        "date": date,
        "service_id": service_id,
        "available_starts": [s.label for s in slots],
        "slots": [_slot_out(s) for s in slots],
    }


@router.get("/{business_id}/availability/nearest", response_model=List[SlotPublic])
def nearest_slots(
    service_id: int,
    limit: int = Query(default=3, ge=1, le=50),
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_business_context),
):
    return [_slot_out(s) for s in booking.get_nearest_slots(session, ctx, service_id, limit)]
