# scheduler/deps.py

from fastapi import Depends, HTTPException
from sqlmodel import Session, select

from scheduler.auth import get_current_user
from scheduler.context import BusinessContext
from scheduler.db import get_session
from scheduler.models import Business


def require_role(user: dict, role: str):
    if user["role"] != role:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_business_context(
    business_id: int,
    session: Session = Depends(get_session),
) -> BusinessContext:
    business = session.get(Business, business_id)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")
    return BusinessContext.from_business(business)


def owned_business(session: Session, user: dict) -> Business:
    require_role(user, "business")
    business = session.exec(
        select(Business).where(Business.owner_email == user["email"])
    ).first()
    if business is None:
        raise HTTPException(status_code=409, detail="Create your business first")
    return business


def get_owner_context(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
) -> BusinessContext:
    return BusinessContext.from_business(owned_business(session, current_user))
