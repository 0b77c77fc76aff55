"""
Authentication schemas
Pydantic models for authentication requests and responses
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, validator
from datetime import datetime

from app.models.farm import UserRole


class UserBase(BaseModel):
    """Base user schema"""
    user_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)


class UserRegister(UserBase):
    """Schema for self-service registration"""
    password: str
    role: UserRole = UserRole.FARMER

    @validator('password')
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters long')
        return v

    @validator('role')
    def validate_role(cls, v):
        if v == UserRole.ADMIN:
            raise ValueError('Administrators cannot self-register')
        return v

    @validator('email')
    def normalize_email(cls, v):
        return v.lower()


class UserLogin(BaseModel):
    """Schema for user login"""
    email: EmailStr
    password: str


class UserPublic(UserBase):
    """Schema for user response (without password)"""
    id: int
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Schema for authentication token response"""
    success: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPublic
