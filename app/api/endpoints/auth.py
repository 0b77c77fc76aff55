"""
Authentication endpoints
Registration, login and the current-user profile
"""

import logging
from datetime import datetime
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.config import settings
from app.models.farm import User, Farm, UserRole
from app.schemas.auth import UserRegister, UserLogin, UserPublic, TokenResponse
from app.schemas.common import Envelope, MessageResponse
from app.core.security import get_password_hash, verify_password, create_user_token
from app.core.exceptions import AuthenticationError, ConflictError
from app.api.deps import get_current_active_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def create_default_farm(user: User, db: Session) -> Farm:
    """Farmers get a farm named after them on sign-up"""
    farm = Farm(
        farm_name=f"{user.user_name}'s Farm",
        user_id=user.id,
        location_name="Default Location",
    )
    db.add(farm)
    return farm


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_user_token(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserPublic.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserRegister, db: Session = Depends(get_db)):
    """
    Register a farmer or viewer account
    """
    if db.query(User).filter(User.email == user_in.email).first():
        raise ConflictError("Email already exists")

    user = User(
        user_name=user_in.user_name,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        phone=user_in.phone,
        role=user_in.role,
    )
    db.add(user)
    db.flush()

    if user.role == UserRole.FARMER:
        create_default_farm(user, db)

    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.id} ({user.role.value})")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Exchange email and password for an access token
    """
    user = db.query(User).filter(User.email == credentials.email.lower()).first()
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthenticationError("Account is disabled")

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return _token_response(user)


@router.get("/me", response_model=Envelope[UserPublic])
async def read_current_user(current_user: User = Depends(get_current_active_user)):
    return {"success": True, "data": current_user}


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: User = Depends(get_current_active_user)):
    """
    Tokens are stateless; the client simply discards its token
    """
    return {"success": True, "message": "Logged out successfully"}
