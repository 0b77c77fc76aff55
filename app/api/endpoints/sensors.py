"""
Sensor data endpoints
Reading ingestion from devices and historical queries for dashboards
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy import and_, desc
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.farm import User
from app.models.device import Device
from app.models.sensor import SensorReading, ReadingSource
from app.schemas.sensor import SensorReadingResponse, AggregateResponse
from app.schemas.common import Envelope
from app.core.exceptions import NotFoundError
from app.api.deps import (
    get_current_active_user,
    get_device_for_user,
    get_connection_manager,
    get_alert_evaluator,
    is_admin,
)
from app.services.ingestion import ingest_reading
from app.services.data_processor import resolve_time_window, aggregate_readings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sensor-data", tags=["Sensor Data"])


def latest_reading(device_id: str, db: Session) -> Optional[SensorReading]:
    return db.query(SensorReading).filter(
        SensorReading.device_id == device_id
    ).order_by(desc(SensorReading.created_at), desc(SensorReading.id)).first()


def _readings_in_window(device_id: str, start: Optional[datetime], end: Optional[datetime], db: Session):
    conditions = [SensorReading.device_id == device_id]
    if start is not None:
        conditions.append(SensorReading.created_at >= start)
    if end is not None:
        conditions.append(SensorReading.created_at <= end)
    return db.query(SensorReading).filter(and_(*conditions))


@router.post("/", response_model=Envelope[SensorReadingResponse], status_code=status.HTTP_201_CREATED)
async def submit_sensor_data(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    manager=Depends(get_connection_manager),
    evaluator=Depends(get_alert_evaluator)
):
    """
    Accept a reading posted directly by a device

    Values may be numbers or `{value, status}` objects; TDS is derived from EC
    when omitted.
    """
    reading = await ingest_reading(
        db,
        payload,
        evaluator=evaluator,
        manager=manager,
        source=ReadingSource.HTTP,
    )
    return {"success": True, "data": SensorReadingResponse.from_reading(reading)}


@router.get("/latest", response_model=Envelope[List[SensorReadingResponse]])
async def get_latest_readings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Latest reading of every device the caller can see
    """
    query = db.query(Device)
    if not is_admin(current_user):
        query = query.filter(Device.user_id == current_user.id)

    readings = []
    for device in query.order_by(Device.id).all():
        reading = latest_reading(device.device_id, db)
        if reading:
            readings.append(SensorReadingResponse.from_reading(reading))

    return {"success": True, "data": readings}


@router.get("/{device_id}/latest", response_model=Envelope[SensorReadingResponse])
async def get_device_latest_reading(
    device_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    device = get_device_for_user(device_id, current_user, db)

    reading = latest_reading(device.device_id, db)
    if not reading:
        raise NotFoundError("No readings found")

    return {"success": True, "data": SensorReadingResponse.from_reading(reading)}


@router.get("/{device_id}/history", response_model=Envelope[List[SensorReadingResponse]])
async def get_device_history(
    device_id: str,
    range: Optional[str] = Query(None, description="1h, 24h, 7d or 30d"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Readings for a device, newest first
    """
    device = get_device_for_user(device_id, current_user, db)
    start, end = resolve_time_window(range, start_date, end_date)

    readings = _readings_in_window(device.device_id, start, end, db).order_by(
        desc(SensorReading.created_at), desc(SensorReading.id)
    ).limit(limit).all()

    return {"success": True, "data": [SensorReadingResponse.from_reading(r) for r in readings]}


@router.get("/{device_id}/aggregate", response_model=Envelope[AggregateResponse])
async def get_device_aggregate(
    device_id: str,
    aggregation: str = Query("hourly", description="hourly or daily"),
    range: Optional[str] = Query(None, description="1h, 24h, 7d or 30d"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Hourly or daily statistics over a window (last 24h by default)
    """
    device = get_device_for_user(device_id, current_user, db)
    start, end = resolve_time_window(range, start_date, end_date, default_range="24h")

    readings = _readings_in_window(device.device_id, start, end, db).order_by(
        SensorReading.created_at
    ).all()

    return {
        "success": True,
        "data": {
            "device_id": device.device_id,
            "aggregation": aggregation,
            "start": start,
            "end": end,
            "buckets": aggregate_readings(readings, aggregation),
        },
    }
