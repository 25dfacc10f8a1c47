# scheduler/routers/waitlist_routes.py

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from scheduler import booking
from scheduler.auth import get_current_user
from scheduler.context import BusinessContext
from scheduler.db import get_session
from scheduler.deps import get_business_context, get_owner_context, require_role
from scheduler.intervals import TimeInterval
from scheduler.models import Business, Notification, WaitlistEntry
from scheduler.schemas import NotificationPublic, WaitlistJoin, WaitlistPublic
from scheduler.waitlist import WaitlistStatus

router = APIRouter(
    tags=["waitlist"],
)


@router.post("/businesses/{business_id}/waitlist", response_model=WaitlistPublic, status_code=201)
def join_waitlist(
    payload: WaitlistJoin,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_business_context),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")

    window = None
    if payload.desired_start is not None:
        window = TimeInterval(payload.desired_start, payload.desired_end)

    return booking.join_waitlist(
        session, ctx, payload.date, payload.service_id, current_user["email"],
        window=window, period=payload.period,
    )


@router.get("/clients/me/waitlist", response_model=List[WaitlistPublic])
def my_waitlist(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")
    return session.exec(
        select(WaitlistEntry)
        .where(WaitlistEntry.client_ref == current_user["email"])
        .where(WaitlistEntry.status.in_([WaitlistStatus.waiting, WaitlistStatus.contacted]))
        .order_by(WaitlistEntry.date, WaitlistEntry.created_at)
    ).all()


@router.delete("/waitlist/{entry_id}", response_model=WaitlistPublic)
def leave_waitlist(
    entry_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    entry = session.get(WaitlistEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Waitlist entry not found")
    ctx = BusinessContext.from_business(session.get(Business, entry.business_id))
    return booking.leave_waitlist(session, ctx, entry_id, current_user["email"])


@router.get("/businesses/me/waitlist", response_model=List[WaitlistPublic])
def business_waitlist(
    on_date: Optional[date] = None,
    session: Session = Depends(get_session),
    ctx: BusinessContext = Depends(get_owner_context),
):
    stmt = select(WaitlistEntry).where(WaitlistEntry.business_id == ctx.business_id)
    if on_date is not None:
        stmt = stmt.where(WaitlistEntry.date == on_date)
    stmt = stmt.order_by(WaitlistEntry.date, WaitlistEntry.created_at, WaitlistEntry.id)
    return session.exec(stmt).all()


@router.get("/clients/me/notifications", response_model=List[NotificationPublic])
def my_notifications(
    unread_only: bool = False,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    stmt = select(Notification).where(Notification.recipient_ref == current_user["email"])
    if unread_only:
        stmt = stmt.where(Notification.is_read == False)  # noqa: E712
    return session.exec(stmt.order_by(Notification.created_at.desc(), Notification.id.desc())).all()


@router.patch("/notifications/{notification_id}/read", response_model=NotificationPublic)
def mark_read(
    notification_id: int,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    note = session.get(Notification, notification_id)
    if note is None or note.recipient_ref != current_user["email"]:
        raise HTTPException(status_code=404, detail="Notification not found")
    note.is_read = True
    session.add(note)
    session.commit()
    session.refresh(note)
    return note
