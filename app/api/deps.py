"""
Dependency injection utilities
Common dependencies for API endpoints
"""

from typing import Optional
from fastapi import Depends, Query, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.farm import User, Farm, UserRole
from app.models.device import Device
from app.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from app.core.security import get_user_id_from_token
from app.config import settings


# OAuth2 scheme for token authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX.lstrip('/')}/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current user from JWT token
    """
    user_id = get_user_id_from_token(token)
    if user_id is None:
        raise AuthenticationError("Invalid or expired token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found or inactive")

    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current active user
    """
    if not current_user.is_active:
        raise AuthenticationError("User not found or inactive")

    return current_user


def require_roles(*roles: UserRole):
    """Build a dependency that only lets the given roles through"""

    async def checker(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError(
                f"User role {current_user.role.value} is not authorized to access this route"
            )
        return current_user

    return checker


get_current_admin_user = require_roles(UserRole.ADMIN)

# Viewers can read but not change farms, devices or alerts
get_current_editor = require_roles(UserRole.ADMIN, UserRole.FARMER)


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN


def get_farm_for_user(farm_id: int, current_user: User, db: Session) -> Farm:
    """
    Load a farm the current user may access
    """
    farm = db.query(Farm).filter(Farm.id == farm_id).first()
    if not farm:
        raise NotFoundError("Farm not found")

    if farm.user_id != current_user.id and not is_admin(current_user):
        raise AuthorizationError("Access denied to this farm")

    return farm


def get_device_for_user(identifier: str, current_user: User, db: Session) -> Device:
    """
    Load a device by numeric id or external device id

    The external id wins when an all-digit identifier matches both. Devices
    owned by someone else are reported as missing to non-admins.
    """
    query = db.query(Device)
    if not is_admin(current_user):
        query = query.filter(Device.user_id == current_user.id)

    device = query.filter(Device.device_id == identifier.strip().upper()).first()
    if device is None and identifier.isdigit():
        device = query.filter(Device.id == int(identifier)).first()

    if not device:
        raise NotFoundError("Device not found")

    return device


def get_pagination_params(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page")
) -> tuple:
    """Get pagination parameters with validation"""
    return page, limit


def get_connection_manager(request: Request):
    return request.app.state.connections


def get_alert_evaluator(request: Request):
    return request.app.state.evaluator
