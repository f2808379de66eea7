import os

# Must be set before agenda.config builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULE_LOCK_BACKEND"] = "local"
os.environ["MAX_OVERRIDES_PER_DAY"] = "2"
os.environ["DEFAULT_TIMEZONE"] = "UTC"

import uuid
from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from agenda.models import (
    Appointment,
    AppointmentStatus,
    Base,
    Client,
    Professional,
    ScheduleSettings,
    Service,
)
from agenda.schemas.auth_context import AuthContext
from agenda.services.appointment.schedule_lock import ScheduleLockManager

# 2030-01-07 is a Monday
MONDAY = datetime(2030, 1, 7)
NOW = datetime(2030, 1, 1, 8, 0)

WORKING_HOURS = {
    day: {"start": "09:00", "end": "18:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
}


def at(hour, minute=0, day_offset=0, base=MONDAY):
    """Wall-clock time on the test Monday (or `day_offset` days later)"""
    return base.replace(day=base.day + day_offset, hour=hour, minute=minute)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def account_id():
    return uuid.uuid4()


@pytest.fixture()
def owner(account_id):
    return AuthContext.owner(account_id)


@pytest.fixture()
def professional(db, account_id):
    professional = Professional(
        account_id=account_id,
        user_account_id=uuid.uuid4(),
        name="Ana Souza",
        working_hours=dict(WORKING_HOURS),
        status="active",
    )
    db.add(professional)
    db.commit()
    db.refresh(professional)
    return professional


@pytest.fixture()
def other_professional(db, account_id):
    professional = Professional(
        account_id=account_id,
        name="Bruno Lima",
        working_hours=dict(WORKING_HOURS),
        status="active",
    )
    db.add(professional)
    db.commit()
    db.refresh(professional)
    return professional


@pytest.fixture()
def service(db, account_id):
    service = Service(account_id=account_id, name="Haircut", price=50, duration_minutes=60)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


@pytest.fixture()
def client(db, account_id):
    client = Client(account_id=account_id, name="Carla Dias", phone="+5511999990000")
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


@pytest.fixture()
def schedule(db, professional):
    """Monday lunch break and one day off"""
    settings = ScheduleSettings(
        professional_id=professional.id,
        breaks=[{"weekday": "monday", "start": "12:00", "end": "13:00", "description": "Lunch"}],
        time_off_dates=["2030-01-09"],
        slot_duration_minutes=30,
    )
    db.add(settings)
    db.commit()
    db.refresh(settings)
    return settings


@pytest.fixture()
def lock_manager():
    return ScheduleLockManager("local", blocking_timeout=1)


@pytest.fixture()
def make_appointment(db, account_id, professional, service, client):
    """Insert an appointment directly, bypassing availability checks"""

    def _make(start_at, **fields):
        values = dict(
            account_id=account_id,
            client_id=client.id,
            professional_id=professional.id,
            service_id=service.id,
            start_at=start_at,
            duration_minutes=service.duration_minutes,
            status=AppointmentStatus.SCHEDULED,
            is_override=False,
        )
        values.update(fields)
        appointment = Appointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make
