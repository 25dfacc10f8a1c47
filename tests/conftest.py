"""Shared fixtures: a throwaway SQLite file per test and a seeded business."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from scheduler.context import BusinessContext
from scheduler.db import get_session, init_db, make_engine
from scheduler.main import app
from scheduler.models import Appointment, Business, Service, WorkingHours
from scheduler.status import AppointmentStatus


@pytest.fixture
def engine(tmp_path):
    # File, not :memory:, so each thread gets its own connection
    engine = make_engine(f"sqlite:///{tmp_path / 'scheduler.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def business(session):
    business = Business(
        owner_email="owner@example.com",
        name="Test Shop",
        timezone="UTC",
        slot_minutes=15,
        booking_horizon_days=30,
    )
    session.add(business)
    session.commit()
    session.refresh(business)

    # 09:00-17:00 every day so tests do not depend on the weekday
    for day in range(7):
        session.add(WorkingHours(business_id=business.id, day_of_week=day, start_minute=9 * 60, end_minute=17 * 60))
    session.commit()
    return business


@pytest.fixture
def ctx(business):
    return BusinessContext.from_business(business)


@pytest.fixture
def day(ctx):
    return ctx.today() + timedelta(days=1)


@pytest.fixture
def make_service(session, business):
    def make(duration: int, name: str | None = None) -> Service:
        service = Service(business_id=business.id, name=name or f"service_{duration}", duration_minutes=duration)
        session.add(service)
        session.commit()
        session.refresh(service)
        return service

    return make


@pytest.fixture
def add_appointment(session, business):
    def add(on_date, start: int, duration: int, service_id: int, client_ref: str = "someone@example.com",
            status: AppointmentStatus = AppointmentStatus.confirmed) -> Appointment:
        appt = Appointment(
            business_id=business.id,
            service_id=service_id,
            client_ref=client_ref,
            date=on_date,
            start_minute=start,
            duration=duration,
            status=status,
        )
        session.add(appt)
        session.commit()
        session.refresh(appt)
        return appt

    return add


@pytest.fixture
def client(engine):
    def override_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """Register a user and return bearer headers for them."""

    def make(email: str, role: str, password: str = "password123") -> dict:
        resp = client.post("/users", json={"email": email, "password": password, "role": role})
        assert resp.status_code == 201, resp.text
        resp = client.post("/auth/login", data={"username": email, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return make
