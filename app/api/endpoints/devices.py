"""
Device management endpoints
Registration, status changes, threshold configuration and audit logs
"""

import logging
from datetime import datetime
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings, DEFAULT_THRESHOLDS, MONITORED_PARAMETERS
from app.database import get_db
from app.models.farm import User, Farm
from app.models.device import Device, DeviceConfiguration, SystemLog
from app.schemas.device import (
    DeviceCreate,
    DeviceUpdate,
    DeviceStatusUpdate,
    DeviceResponse,
    ConfigurationUpdate,
    ConfigurationResponse,
    SystemLogResponse,
)
from app.schemas.common import Envelope, MessageResponse
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.api.deps import (
    get_current_active_user,
    get_current_editor,
    get_device_for_user,
    get_farm_for_user,
    get_connection_manager,
    is_admin,
)
from app.services.device_service import (
    generate_device_id,
    create_default_configuration,
    default_mqtt_topic,
    log_device_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/devices", tags=["Device Management"])


async def _broadcast_status(device: Device, manager):
    await manager.broadcast(
        {
            "type": "deviceStatus",
            "data": {
                "device_id": device.device_id,
                "status": device.status.value,
                "updated_at": datetime.utcnow().isoformat(),
            },
        },
        device_id=device.device_id,
        user_id=device.user_id,
        farm_id=device.farm_id,
    )


@router.get("/", response_model=Envelope[List[DeviceResponse]])
async def list_devices(
    farm_id: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    query = db.query(Device)
    if not is_admin(current_user):
        query = query.filter(Device.user_id == current_user.id)
    if farm_id:
        query = query.filter(Device.farm_id == farm_id)

    devices = query.order_by(Device.created_at.desc(), Device.id.desc()).all()
    return {"success": True, "data": devices}


@router.get("/{device_id}", response_model=Envelope[DeviceResponse])
async def get_device(
    device_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    device = get_device_for_user(device_id, current_user, db)
    return {"success": True, "data": device}


@router.post("/", response_model=Envelope[DeviceResponse], status_code=status.HTTP_201_CREATED)
async def create_device(
    device_in: DeviceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    """
    Register a device with a default threshold configuration

    The farm defaults to the owner's farm; the device id is generated when
    not supplied.
    """
    owner_id = current_user.id
    if is_admin(current_user) and device_in.user_id:
        if not db.query(User).filter(User.id == device_in.user_id).first():
            raise NotFoundError("User not found")
        owner_id = device_in.user_id

    if device_in.farm_id:
        farm = get_farm_for_user(device_in.farm_id, current_user, db)
    else:
        farm = db.query(Farm).filter(Farm.user_id == owner_id).first()
        if not farm:
            if is_admin(current_user):
                raise ValidationError("Target user does not have a farm assigned.")
            raise ValidationError("You do not have a farm assigned. Please contact an admin.")

    if settings.MAX_DEVICES_PER_FARM is not None:
        device_count = db.query(func.count(Device.id)).filter(Device.farm_id == farm.id).scalar() or 0
        if device_count >= settings.MAX_DEVICES_PER_FARM:
            raise ConflictError(f"Farm already has the maximum of {settings.MAX_DEVICES_PER_FARM} device(s)")

    external_id = device_in.device_id or generate_device_id()
    if db.query(Device).filter(Device.device_id == external_id).first():
        raise ConflictError("Device ID already exists. Please use a unique ID.")

    device_data = device_in.dict(
        exclude={"device_id", "farm_id", "user_id", "mqtt_topic", "alert_enabled", "sampling_interval"}
    )
    device = Device(
        **device_data,
        device_id=external_id,
        farm_id=farm.id,
        user_id=owner_id,
    )
    db.add(device)
    db.flush()

    create_default_configuration(
        device,
        db,
        mqtt_topic=device_in.mqtt_topic,
        alert_enabled=device_in.alert_enabled,
        sampling_interval=device_in.sampling_interval,
    )
    db.flush()
    log_device_event(device, db, "DEVICE_REGISTERED", f"Device {device.device_id} registered")

    db.commit()
    db.refresh(device)

    logger.info(f"Device {device.device_id} registered on farm {farm.id} for user {owner_id}")
    return {"success": True, "data": device}


@router.put("/{device_id}", response_model=Envelope[DeviceResponse])
async def update_device(
    device_id: str,
    device_update: DeviceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor),
    manager=Depends(get_connection_manager)
):
    device = get_device_for_user(device_id, current_user, db)
    previous_status = device.status

    update_data = device_update.dict(exclude_unset=True)
    for field, value in update_data.items():
        if value is not None:
            setattr(device, field, value)

    db.commit()
    db.refresh(device)

    if device.status != previous_status:
        await _broadcast_status(device, manager)

    return {"success": True, "data": device}


@router.patch("/{device_id}/status", response_model=Envelope[DeviceResponse])
async def update_device_status(
    device_id: str,
    status_update: DeviceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor),
    manager=Depends(get_connection_manager)
):
    device = get_device_for_user(device_id, current_user, db)

    device.status = status_update.status
    log_device_event(
        device, db, "STATUS_CHANGE",
        f"Device status set to {status_update.status.value}",
        details={"status": status_update.status.value},
    )
    db.commit()
    db.refresh(device)

    await _broadcast_status(device, manager)
    return {"success": True, "data": device}


@router.get("/{device_id}/configuration", response_model=Envelope[ConfigurationResponse])
async def get_device_configuration(
    device_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    device = get_device_for_user(device_id, current_user, db)
    if not device.configuration:
        raise NotFoundError("Configuration not found")
    return {"success": True, "data": device.configuration}


@router.put("/{device_id}/configuration", response_model=Envelope[ConfigurationResponse])
async def update_device_configuration(
    device_id: str,
    config_update: ConfigurationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    """
    Create or update the device's sampling and threshold configuration
    """
    device = get_device_for_user(device_id, current_user, db)
    update_data = config_update.dict(exclude_unset=True)

    configuration = device.configuration
    if configuration is None:
        configuration = DeviceConfiguration(
            device=device,
            mqtt_topic=default_mqtt_topic(device.device_id),
            alert_enabled=True,
            sampling_interval=settings.DEFAULT_SAMPLING_INTERVAL,
            **DEFAULT_THRESHOLDS
        )
        db.add(configuration)

    for field, value in update_data.items():
        if value is None and field in ("mqtt_topic", "alert_enabled", "sampling_interval"):
            continue
        setattr(configuration, field, value)

    # Bounds that were not both part of the request still have to be ordered
    for min_field, max_field in MONITORED_PARAMETERS.values():
        low = getattr(configuration, min_field)
        high = getattr(configuration, max_field)
        if low is not None and high is not None and high <= low:
            db.rollback()
            raise ValidationError(f"{max_field} must be greater than {min_field}")

    db.flush()
    log_device_event(
        device, db, "CONFIG_UPDATE", "Device configuration updated",
        details={"updated_fields": sorted(update_data)},
    )
    db.commit()
    db.refresh(configuration)

    logger.info(f"Configuration updated for {device.device_id}: {sorted(update_data)}")
    return {"success": True, "data": configuration}


@router.get("/{device_id}/logs", response_model=Envelope[List[SystemLogResponse]])
async def get_device_logs(
    device_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    device = get_device_for_user(device_id, current_user, db)
    logs = db.query(SystemLog).filter(SystemLog.device_id == device.id).order_by(
        SystemLog.created_at.desc(), SystemLog.id.desc()
    ).limit(limit).all()
    return {"success": True, "data": logs}


@router.delete("/{device_id}", response_model=MessageResponse)
async def delete_device(
    device_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    """
    Delete a device with its configuration, logs, readings and alerts
    """
    device = get_device_for_user(device_id, current_user, db)
    external_id = device.device_id

    db.delete(device)
    db.commit()

    logger.info(f"Device {external_id} deleted by user {current_user.id}")
    return {"success": True, "message": "Device deleted"}
