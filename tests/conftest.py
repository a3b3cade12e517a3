import os

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
os.environ.setdefault("DATABASE_URL", SQLALCHEMY_DATABASE_URL)
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from hunt.main import app as fastapi_app  # noqa: E402
from hunt.database import Base  # noqa: E402
from hunt.models import Payment, STATUS_PAID, utcnow  # noqa: E402
from hunt.repository import HuntRepository  # noqa: E402
import hunt.auth  # noqa: E402

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

PARTICIPANT = "24F01A4909"

LED_TARGET = "550e8400-e29b-41d4-a716-446655440000"
RESISTOR_TARGET = "6ba7b810-9dad-11d1-80b4-00c04fd430c8"
BREADBOARD_TARGET = "9b1deb4d-3b7d-4bad-9bdd-2b0d7b3dcb6d"
JUMPER_WIRES_TARGET = "1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed"
BATTERY_TARGET = "f47ac10b-58cc-4372-a567-0e02b2c3d479"

ALL_TARGETS = [LED_TARGET, RESISTOR_TARGET, BREADBOARD_TARGET, JUMPER_WIRES_TARGET, BATTERY_TARGET]


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def repo(db):
    return HuntRepository(db)


@pytest.fixture
def client(monkeypatch):
    # Every route, admin and webhook session comes from hunt.routes.get_repo
    monkeypatch.setattr("hunt.routes.SessionLocal", TestingSessionLocal)
    fastapi_app.dependency_overrides[hunt.auth.verify_token] = lambda: True
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


def add_paid_payment(registration_id=PARTICIPANT, order_id="ORDER-PAID-1", **extra):
    db = TestingSessionLocal()
    db.add(Payment(
        order_id=order_id,
        registration_id=registration_id,
        amount=2000,
        currency="inr",
        status=STATUS_PAID,
        created_at=utcnow(),
        **extra,
    ))
    db.commit()
    db.close()
