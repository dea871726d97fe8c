import itertools
import os
import tempfile
from pathlib import Path

# Configure the environment before the application reads its settings
os.environ["TESTING"] = "1"
TEST_DB_PATH = Path(tempfile.gettempdir()) / "doctorgo_test.db"
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from doctorgo.main import app
from doctorgo.core.database import get_db, get_redis, Base
from doctorgo.core.security import UserRole, create_access_token
from doctorgo.models import Doctor, Specialty, User

engine = create_engine(
    os.environ["TEST_DATABASE_URL"],
    connect_args={"check_same_thread": False, "timeout": 30}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

class FakeRedis:
    """In-memory stand-in for the handful of redis commands the app uses."""

    def __init__(self):
        self.data = {}

    def setex(self, key, time, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

    def clear(self):
        self.data.clear()

fake_redis = FakeRedis()

app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_redis] = lambda: fake_redis

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    fake_redis.clear()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def session_factory(test_db):
    """Fresh sessions for tests that simulate concurrent requests."""
    return TestingSessionLocal

@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

def make_user(db, external_id, role=UserRole.PATIENT, full_name=None):
    user = User(
        external_id=external_id,
        email=f"{external_id}@example.com",
        full_name=full_name or external_id.replace("-", " ").title(),
        role=role,
        is_active=True
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

_doctor_ids = itertools.count(1)

def make_doctor(db, user=None, specialty=Specialty.GENERAL_PRACTICE, **overrides):
    if user is None:
        user = make_user(db, f"doctor-{next(_doctor_ids)}", UserRole.DOCTOR)
    fields = {
        "first_name": "Grace",
        "last_name": "Hopper",
        "rating": 4.5,
        "cost": 100.0,
        "clinic_name": "Central Clinic",
        "clinic_address": "1 Main St",
        "lat": 40.7128,
        "lng": -74.0060,
    }
    fields.update(overrides)
    doctor = Doctor(user_id=user.id, specialty=specialty, queue_length=0, **fields)
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor

def auth_headers(user):
    token = create_access_token({
        "sub": user.external_id,
        "role": user.role.value,
        "email": user.email,
        "name": user.full_name
    })
    return {"Authorization": f"Bearer {token}"}
