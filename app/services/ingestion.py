"""
Reading ingestion pipeline shared by the HTTP endpoint and the MQTT listener
"""

import logging
import uuid
from typing import Any, Dict, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationError
from app.models.device import Device
from app.models.sensor import ReadingSource, SensorReading
from app.services.device_service import log_device_event
from app.services.data_processor import (
    HTTP_FIELD_ALIASES,
    MQTT_FIELD_ALIASES,
    normalize_reading,
    quality_flag,
    serialize_reading,
)

logger = logging.getLogger(__name__)


async def ingest_reading(
    db: Session,
    payload: Dict[str, Any],
    evaluator=None,
    manager=None,
    source: ReadingSource = ReadingSource.HTTP,
    device_id: Optional[str] = None,
) -> SensorReading:
    """
    Validate, store and fan out one sensor reading

    The device id comes from the payload (`device_id` or `deviceId`) unless the
    transport supplies it. Raises NotFoundError for unknown devices and
    ValidationError for missing or non-numeric values; nothing is stored in
    either case.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Sensor data must be a JSON object")

    device_id = device_id or payload.get("device_id") or payload.get("deviceId")
    if not device_id or not isinstance(device_id, str):
        raise ValidationError("device_id is required")
    device_id = device_id.strip().upper()

    device = db.query(Device).filter(Device.device_id == device_id).first()
    if not device:
        raise NotFoundError(f"Device {device_id} not found")

    aliases = MQTT_FIELD_ALIASES if source == ReadingSource.MQTT else HTTP_FIELD_ALIASES
    values = normalize_reading(payload, aliases)
    flag = quality_flag(values, device.configuration)

    now = datetime.utcnow()
    try:
        reading = SensorReading(
            data_id=str(uuid.uuid4()),
            device_id=device.device_id,
            quality_flag=flag,
            source=source,
            created_at=now,
            **values
        )
        db.add(reading)

        device.last_activity = now

        log_device_event(
            device, db, "SENSOR_READING",
            f"Reading {reading.data_id} received via {source.value}",
            details={"data_id": reading.data_id, "quality_flag": flag.value},
        )

        db.commit()
        db.refresh(reading)
    except Exception:
        db.rollback()
        raise

    logger.info(f"Stored reading {reading.data_id} for {device.device_id} ({flag.value}, {source.value})")

    if evaluator is not None:
        await evaluator.evaluate(db, device, reading)

    if manager is not None:
        await manager.broadcast(
            {"type": "sensorReading", "data": serialize_reading(reading)},
            device_id=device.device_id,
            farm_id=device.farm_id,
        )

    return reading
