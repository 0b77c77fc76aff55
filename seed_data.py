#!/usr/bin/env python3
"""
Seed a development database with an admin, a farmer with one farm and
device, and a day of readings

Usage: python seed_data.py [--readings 96] [--interval-minutes 15]
"""

import argparse
import random
import uuid
from datetime import datetime, timedelta

from app.database import SessionLocal, Base, engine
from app.models.farm import User, UserRole, Farm
from app.models.device import Device
from app.models.sensor import SensorReading
from app.models import alert  # noqa: F401  register tables
from app.core.security import get_password_hash
from app.services.data_processor import HTTP_FIELD_ALIASES, normalize_reading, quality_flag
from app.services.device_service import create_default_configuration, generate_device_id, log_device_event
from app.services.sensor_simulator import GreenPulseSensorSimulator

ADMIN_EMAIL = "admin@greenpulse.local"
FARMER_EMAIL = "farmer@greenpulse.local"
DEFAULT_PASSWORD = "greenpulse123"


def seed_database(db, readings=96, interval_minutes=15, now=None, seed=42):
    """
    Populate an empty database; returns None when users already exist
    """
    if db.query(User).filter(User.email.in_([ADMIN_EMAIL, FARMER_EMAIL])).first():
        print("Seed users already exist, nothing to do.")
        return None

    now = now or datetime.utcnow()

    admin = User(
        user_name="GreenPulse Admin",
        email=ADMIN_EMAIL,
        hashed_password=get_password_hash(DEFAULT_PASSWORD),
        role=UserRole.ADMIN,
    )
    farmer = User(
        user_name="Somchai",
        email=FARMER_EMAIL,
        hashed_password=get_password_hash(DEFAULT_PASSWORD),
        role=UserRole.FARMER,
    )
    db.add_all([admin, farmer])
    db.flush()

    farm = Farm(
        farm_name="Somchai's Farm",
        user_id=farmer.id,
        location_name="Greenhouse A",
        city="Chiang Mai",
        tank_count=2,
    )
    db.add(farm)
    db.flush()

    device = Device(
        device_id=generate_device_id(),
        device_name="Greenhouse A Node 1",
        location="Tank 1",
        farm_id=farm.id,
        user_id=farmer.id,
    )
    db.add(device)
    db.flush()
    create_default_configuration(device, db)
    db.flush()
    log_device_event(device, db, "DEVICE_REGISTERED", f"Device {device.device_name} registered by seed script")

    simulator = GreenPulseSensorSimulator("http://localhost", device.device_id, rng=random.Random(seed))
    start = now - timedelta(minutes=interval_minutes * readings)

    for index in range(readings):
        elapsed = index * interval_minutes * 60
        values = normalize_reading(simulator.generate_reading(elapsed=elapsed), HTTP_FIELD_ALIASES)
        db.add(SensorReading(
            data_id=str(uuid.uuid4()),
            device_id=device.device_id,
            quality_flag=quality_flag(values, device.configuration),
            created_at=start + timedelta(minutes=interval_minutes * (index + 1)),
            **values
        ))

    device.last_activity = now
    db.commit()

    print(f"Seeded admin '{ADMIN_EMAIL}', farmer '{FARMER_EMAIL}' (password '{DEFAULT_PASSWORD}')")
    print(f"Device {device.device_id} with {readings} readings")

    return {"admin": admin, "farmer": farmer, "farm": farm, "device": device}


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the GreenPulse development database.")
    parser.add_argument("--readings", type=int, default=96, help="Number of readings to generate.")
    parser.add_argument("--interval-minutes", type=int, default=15, help="Minutes between readings.")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_database(db, readings=args.readings, interval_minutes=args.interval_minutes)
    finally:
        db.close()
