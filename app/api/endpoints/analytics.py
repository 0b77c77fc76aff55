"""
Analytics endpoints
Dashboard summary for the current user and system-wide statistics for admins
"""

from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.farm import User, Farm
from app.models.device import Device, DeviceStatus
from app.models.alert import Alert, OPEN_ALERT_STATUSES
from app.models.sensor import SensorReading
from app.schemas.sensor import SensorReadingResponse
from app.api.deps import get_current_active_user, get_current_admin_user, is_admin
from app.api.endpoints.sensors import latest_reading

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard")
async def get_dashboard_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Device totals, open alerts and the latest reading of each device
    """
    device_query = db.query(Device)
    alert_query = db.query(func.count(Alert.id)).filter(Alert.status.in_(OPEN_ALERT_STATUSES))
    if not is_admin(current_user):
        device_query = device_query.filter(Device.user_id == current_user.id)
        alert_query = alert_query.filter(Alert.user_id == current_user.id)

    devices = device_query.order_by(Device.id).all()

    latest_readings = []
    for device in devices:
        reading = latest_reading(device.device_id, db)
        if reading:
            latest_readings.append(SensorReadingResponse.from_reading(reading).model_dump(mode="json"))

    return {
        "success": True,
        "data": {
            "total_devices": len(devices),
            "active_devices": len([d for d in devices if d.status == DeviceStatus.ACTIVE]),
            "open_alerts": alert_query.scalar() or 0,
            "latest_readings": latest_readings,
            "last_updated": datetime.utcnow().isoformat(),
        },
    }


@router.get("/admin/stats")
async def get_admin_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    System-wide counts, the ten most recent readings and per-device activity
    """
    stats = {
        "total_users": db.query(func.count(User.id)).scalar() or 0,
        "total_farms": db.query(func.count(Farm.id)).scalar() or 0,
        "total_devices": db.query(func.count(Device.id)).scalar() or 0,
        "active_alerts": db.query(func.count(Alert.id)).filter(
            Alert.status.in_(OPEN_ALERT_STATUSES)
        ).scalar() or 0,
    }

    recent = db.query(SensorReading, Device, Farm).join(
        Device, Device.device_id == SensorReading.device_id
    ).outerjoin(
        Farm, Farm.id == Device.farm_id
    ).order_by(desc(SensorReading.created_at), desc(SensorReading.id)).limit(10).all()

    last_sensor_data = [
        {
            "device_id": device.device_id,
            "device_name": device.device_name,
            "farm_name": farm.farm_name if farm else None,
            "timestamp": reading.created_at.isoformat() if reading.created_at else None,
        }
        for reading, device, farm in recent
    ]

    last_reading_at = func.max(SensorReading.created_at).label("last_reading")
    activity_rows = db.query(Device, Farm, last_reading_at).outerjoin(
        SensorReading, SensorReading.device_id == Device.device_id
    ).outerjoin(
        Farm, Farm.id == Device.farm_id
    ).group_by(Device.id, Farm.id).all()

    # Most recently active first, silent devices last
    activity_rows.sort(key=lambda row: row[2] or datetime.min, reverse=True)

    device_activity = [
        {
            "device_id": device.device_id,
            "device_name": device.device_name,
            "farm_name": farm.farm_name if farm else None,
            "status": device.status.value,
            "last_reading": last_reading.isoformat() if last_reading else None,
        }
        for device, farm, last_reading in activity_rows[:20]
    ]

    return {
        "success": True,
        "data": {
            "stats": stats,
            "last_sensor_data": last_sensor_data,
            "device_activity": device_activity,
        },
    }
