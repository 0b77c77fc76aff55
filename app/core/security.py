"""
Security utilities
Password hashing and the bearer tokens shared by the REST API and WebSocket auth
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign an access token

    `exp` defaults to ACCESS_TOKEN_EXPIRE_MINUTES from now.
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = dict(claims)
    payload.setdefault("type", ACCESS_TOKEN_TYPE)
    payload["iat"] = datetime.utcnow()
    payload["exp"] = datetime.utcnow() + lifetime
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user) -> str:
    """Token for a user: id as subject, plus email and role"""
    return create_access_token({
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
    })


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decoded claims of a valid access token, or None

    Expired, tampered and non-access tokens all yield None.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE:
        return None
    return payload


def get_user_id_from_token(token: str) -> Optional[int]:
    payload = verify_token(token)
    if payload is None:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
