"""
Farm management endpoints
"""

import logging
from datetime import datetime, timedelta
from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.farm import User, Farm
from app.models.device import Device, DeviceStatus
from app.models.alert import Alert, OPEN_ALERT_STATUSES
from app.models.sensor import SensorReading
from app.schemas.farm import FarmCreate, FarmUpdate, FarmResponse, FarmSummary, FarmStatistics
from app.schemas.device import DeviceResponse
from app.schemas.common import Envelope, MessageResponse
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.api.deps import get_current_active_user, get_current_editor, get_farm_for_user, is_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/farms", tags=["Farm Management"])


def _device_counts(farm_id: int, db: Session):
    total = db.query(func.count(Device.id)).filter(Device.farm_id == farm_id).scalar() or 0
    active = db.query(func.count(Device.id)).filter(
        and_(Device.farm_id == farm_id, Device.status == DeviceStatus.ACTIVE)
    ).scalar() or 0
    return total, active


@router.get("/", response_model=Envelope[List[FarmSummary]])
async def list_farms(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    List the caller's farm, or every farm for admins
    """
    query = db.query(Farm)
    if not is_admin(current_user):
        query = query.filter(Farm.user_id == current_user.id)

    farms = query.order_by(Farm.created_at.desc(), Farm.id.desc()).all()

    summaries = []
    for farm in farms:
        total, active = _device_counts(farm.id, db)
        summaries.append(FarmSummary(
            **FarmResponse.model_validate(farm).model_dump(),
            device_count=total,
            active_device_count=active,
            owner_name=farm.owner.user_name if farm.owner else None,
        ))

    return {"success": True, "data": summaries}


@router.get("/{farm_id}")
async def get_farm(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    farm = get_farm_for_user(farm_id, current_user, db)
    devices = db.query(Device).filter(Device.farm_id == farm.id).all()

    data = FarmResponse.model_validate(farm).model_dump(mode="json")
    data["owner_name"] = farm.owner.user_name if farm.owner else None
    data["device_count"] = len(devices)
    data["devices"] = [DeviceResponse.model_validate(d).model_dump(mode="json") for d in devices]

    return {"success": True, "data": data}


@router.post("/", response_model=Envelope[FarmResponse], status_code=status.HTTP_201_CREATED)
async def create_farm(
    farm_in: FarmCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    """
    Create a farm; admins may create it for another user
    """
    owner_id = current_user.id
    if is_admin(current_user) and farm_in.user_id:
        if not db.query(User).filter(User.id == farm_in.user_id).first():
            raise NotFoundError("User not found")
        owner_id = farm_in.user_id

    if db.query(Farm).filter(Farm.user_id == owner_id).first():
        raise ConflictError("User already has a farm")

    farm_data = farm_in.dict(exclude={"user_id"})
    farm = Farm(**farm_data, user_id=owner_id)
    db.add(farm)
    db.commit()
    db.refresh(farm)

    logger.info(f"Farm {farm.id} created for user {owner_id}")
    return {"success": True, "data": farm}


@router.put("/{farm_id}", response_model=Envelope[FarmResponse])
async def update_farm(
    farm_id: int,
    farm_update: FarmUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    farm = get_farm_for_user(farm_id, current_user, db)

    update_data = farm_update.dict(exclude_unset=True)
    for field, value in update_data.items():
        setattr(farm, field, value)

    db.commit()
    db.refresh(farm)

    return {"success": True, "data": farm}


@router.delete("/{farm_id}", response_model=MessageResponse)
async def delete_farm(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_editor)
):
    farm = get_farm_for_user(farm_id, current_user, db)

    device_count, _ = _device_counts(farm.id, db)
    if device_count > 0:
        raise ValidationError(
            f"Cannot delete farm with {device_count} device(s). Please remove devices first."
        )

    db.delete(farm)
    db.commit()

    logger.info(f"Farm {farm_id} deleted by user {current_user.id}")
    return {"success": True, "message": "Farm deleted"}


@router.get("/{farm_id}/devices", response_model=Envelope[List[DeviceResponse]])
async def get_farm_devices(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    farm = get_farm_for_user(farm_id, current_user, db)
    devices = db.query(Device).filter(Device.farm_id == farm.id).order_by(Device.id).all()
    return {"success": True, "data": devices}


@router.get("/{farm_id}/statistics", response_model=Envelope[FarmStatistics])
async def get_farm_statistics(
    farm_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    farm = get_farm_for_user(farm_id, current_user, db)
    total, active = _device_counts(farm.id, db)

    open_alerts = db.query(func.count(Alert.id)).filter(
        and_(Alert.farm_id == farm.id, Alert.status.in_(OPEN_ALERT_STATUSES))
    ).scalar() or 0

    since = datetime.utcnow() - timedelta(hours=24)
    readings_last_24h = db.query(func.count(SensorReading.id)).join(
        Device, Device.device_id == SensorReading.device_id
    ).filter(
        and_(Device.farm_id == farm.id, SensorReading.created_at >= since)
    ).scalar() or 0

    return {
        "success": True,
        "data": {
            "farm": farm,
            "device_count": total,
            "active_device_count": active,
            "inactive_device_count": total - active,
            "open_alert_count": open_alerts,
            "readings_last_24h": readings_last_24h,
        },
    }
