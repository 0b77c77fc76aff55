"""
User management endpoints (admin only)
"""

import logging
import math
from typing import Optional, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_, func
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.farm import User, UserRole
from app.models.device import Device
from app.models.alert import Alert
from app.schemas.auth import UserPublic
from app.schemas.farm import UserCreate, UserUpdate, UserDetail, UserStatus, FarmResponse
from app.schemas.common import Envelope, PaginatedEnvelope, MessageResponse
from app.core.security import get_password_hash
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.api.deps import get_current_admin_user, get_pagination_params
from app.api.endpoints.auth import create_default_farm

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["User Management"])


def _get_user_or_404(user_id: int, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def purge_user(user: User, db: Session) -> int:
    """
    Delete a user with their farm and devices; returns the number of devices removed.
    The caller commits.
    """
    conditions = [Device.user_id == user.id]
    if user.farm:
        conditions.append(Device.farm_id == user.farm.id)

    devices = db.query(Device).filter(or_(*conditions)).all()
    for device in devices:
        db.delete(device)
    db.flush()

    db.query(Alert).filter(Alert.acknowledged_by == user.id).update(
        {Alert.acknowledged_by: None}, synchronize_session=False
    )
    db.query(Alert).filter(Alert.resolved_by == user.id).update(
        {Alert.resolved_by: None}, synchronize_session=False
    )

    db.delete(user)
    return len(devices)


def _user_detail(user: User, db: Session) -> UserDetail:
    device_count = db.query(func.count(Device.id)).filter(Device.user_id == user.id).scalar()
    return UserDetail(
        **UserPublic.model_validate(user).model_dump(),
        farm=FarmResponse.model_validate(user.farm) if user.farm else None,
        device_count=device_count or 0,
    )


@router.get("/", response_model=PaginatedEnvelope[List[UserPublic]])
async def list_users(
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, description="Match on user name or email"),
    pagination: tuple = Depends(get_pagination_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    page, limit = pagination
    query = db.query(User)

    if role:
        query = query.filter(User.role == role)

    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.user_name.ilike(pattern), User.email.ilike(pattern)))

    total = query.count()
    users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return {
        "success": True,
        "data": users,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if total else 0,
        },
    }


@router.get("/{user_id}", response_model=Envelope[UserDetail])
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    user = _get_user_or_404(user_id, db)
    return {"success": True, "data": _user_detail(user, db)}


@router.post("/", response_model=Envelope[UserDetail], status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Create a user of any role; farmers get a default farm
    """
    if db.query(User).filter(User.email == user_in.email).first():
        raise ConflictError("Email already exists")

    user = User(
        user_name=user_in.user_name,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        role=user_in.role,
        phone=user_in.phone,
    )
    db.add(user)
    db.flush()

    if user.role == UserRole.FARMER:
        create_default_farm(user, db)

    db.commit()
    db.refresh(user)

    logger.info(f"Admin {current_user.id} created user {user.id} ({user.role.value})")
    return {"success": True, "data": _user_detail(user, db)}


@router.put("/{user_id}", response_model=Envelope[UserDetail])
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    user = _get_user_or_404(user_id, db)
    update_data = user_update.dict(exclude_unset=True)

    email = update_data.pop("email", None)
    if email and email != user.email:
        if db.query(User).filter(User.email == email).first():
            raise ConflictError("Email already exists")
        user.email = email

    password = update_data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)

    for field, value in update_data.items():
        if value is not None:
            setattr(user, field, value)

    db.commit()
    db.refresh(user)

    return {"success": True, "data": _user_detail(user, db)}


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """
    Delete a user together with their farm and devices
    """
    user = _get_user_or_404(user_id, db)

    if user.id == current_user.id:
        raise ValidationError("Cannot delete your own account")

    removed = purge_user(user, db)
    db.commit()

    logger.info(f"Admin {current_user.id} deleted user {user_id} and {removed} device(s)")
    return {"success": True, "message": "User and associated data deleted successfully"}


@router.patch("/{user_id}/toggle-status", response_model=Envelope[UserStatus])
async def toggle_user_status(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    user = _get_user_or_404(user_id, db)

    if user.id == current_user.id:
        raise ValidationError("Cannot deactivate your own account")

    user.is_active = not user.is_active
    db.commit()

    return {"success": True, "data": {"id": user.id, "is_active": user.is_active}}
