import os

# The application engine is built at import time; keep it off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

import pytest
from jose import jwt
from sqlalchemy.orm import sessionmaker

from slotbook.config.database import build_engine, create_tables
from slotbook.config.settings import settings
from slotbook.models import (
    AvailabilityRule,
    Business,
    Professional,
    Service,
)
from slotbook.services.booking.locks import ProfessionalLocks

API_TOKEN = "bk_" + "ab" * 32

# Monday 2025-03-03 08:00 UTC; MONDAY below is one week later
NOW = datetime(2025, 3, 3, 8, 0, tzinfo=timezone.utc)


def fixed_clock(now=NOW):
    return lambda: now


def create_access_token(claims: dict) -> str:
    """Operator JWT as issued by the auth service, signed with the test settings."""
    now = datetime.now(timezone.utc)
    to_encode = {
        **claims,
        "exp": now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'slotbook.db'}")
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def locks():
    return ProfessionalLocks(timeout_seconds=5)


@pytest.fixture
def clock():
    return fixed_clock()


@pytest.fixture
def business(db):
    business = Business(
        name="Barbearia Central",
        timezone="UTC",
        booking_settings={
            "buffer_minutes": 15,
            "slot_interval_minutes": 60,
            "api_token": API_TOKEN,
        },
    )
    db.add(business)
    db.commit()
    return business


@pytest.fixture
def service(db, business):
    service = Service(business_id=business.id, name="Haircut", duration=60, price=Decimal("35.00"))
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def make_professional(db, business):
    """Professional working every weekday 09:00-18:00 unless told otherwise."""

    def _make(name="Ana", start=time(9, 0), end=time(18, 0), break_start=None, break_end=None,
              days=range(7), **kwargs):
        professional = Professional(business_id=business.id, name=name, **kwargs)
        db.add(professional)
        db.flush()
        for day in days:
            db.add(AvailabilityRule(
                professional_id=professional.id,
                day_of_week=day,
                start_time=start,
                end_time=end,
                break_start=break_start,
                break_end=break_end,
            ))
        db.commit()
        return professional

    return _make


@pytest.fixture
def professional(make_professional):
    return make_professional()
