# scheduler/routers/users_routes.py

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from scheduler.db import get_session
from scheduler.models import Business, User
from scheduler.schemas import UserCreate, UserPublic
from scheduler.auth import get_current_user, hash_password

router = APIRouter(
    tags=["users"],
)


def _public(user_id: int, email: str, role: str, session: Session) -> dict:
    business_id = None
    if role == "business":
        business = session.exec(
            select(Business).where(Business.owner_email == email)
        ).first()
        business_id = business.id if business else None
    return {"id": user_id, "email": email, "role": role, "business_id": business_id}


@router.get("/me", response_model=UserPublic)
def me(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    return _public(current_user["id"], current_user["email"], current_user["role"], session)


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    # 1) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == user.email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    # 2) Create user in DB
    db_user = User(
        email=user.email,
        password_hash=hash_password(user.password),
        role=user.role.value,
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    # 3) Return public user
    return _public(db_user.id, db_user.email, db_user.role, session)
