import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["MQTT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.database import Base, engine, SessionLocal
from app.main import app
from app.models.farm import User, UserRole, Farm
from app.models.device import Device
from app.core.security import get_password_hash, create_user_token
from app.services.device_service import create_default_configuration

API = "/api/v1"
PASSWORD = "password123"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def make_user(db, email, role=UserRole.FARMER, name="Test User", with_farm=False):
    user = User(
        user_name=name,
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
    )
    db.add(user)
    db.flush()
    if with_farm:
        db.add(Farm(farm_name=f"{name}'s Farm", user_id=user.id))
    db.commit()
    db.refresh(user)
    return user


def make_device(db, user, device_id="GP-TEST-001", name="Tank Node", with_config=True):
    device = Device(
        device_id=device_id,
        device_name=name,
        farm_id=user.farm.id,
        user_id=user.id,
    )
    db.add(device)
    db.flush()
    if with_config:
        create_default_configuration(device, db)
    db.commit()
    db.refresh(device)
    return device


def auth_headers(user):
    return {"Authorization": f"Bearer {create_user_token(user)}"}


def reading_payload(device_id="GP-TEST-001", **overrides):
    payload = {
        "device_id": device_id,
        "ph_value": 6.5,
        "ec_value": 1.5,
        "water_temperature_c": 24.0,
        "air_temperature_c": 27.0,
        "air_humidity": 60.0,
        "light_intensity": 4500,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def farmer(db):
    return make_user(db, "farmer@example.com", name="Farmer", with_farm=True)


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def viewer(db):
    return make_user(db, "viewer@example.com", role=UserRole.VIEWER, name="Viewer")


@pytest.fixture
def device(db, farmer):
    return make_device(db, farmer)
