"""
Pydantic schemas for farm and user management endpoints
Handles request/response validation and serialization
"""

from pydantic import BaseModel, EmailStr, Field, validator
from typing import Optional, List
from datetime import datetime

from app.models.farm import UserRole, FarmStatus
from app.schemas.auth import UserPublic


class FarmBase(BaseModel):
    """Base farm schema with common fields"""
    farm_name: str = Field(..., min_length=1, max_length=150, description="Farm name")
    location_name: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = Field(None, max_length=300)
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field("Thailand", max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    status: FarmStatus = FarmStatus.ACTIVE
    description: Optional[str] = Field(None, max_length=1000)
    area: Optional[float] = Field(None, ge=0, description="Area in square meters")
    tank_count: Optional[int] = Field(None, ge=0)


class FarmCreate(FarmBase):
    """Schema for creating a farm; admins may create it on behalf of a user"""
    user_id: Optional[int] = Field(None, gt=0)


class FarmUpdate(BaseModel):
    """Schema for updating farm information"""
    farm_name: Optional[str] = Field(None, min_length=1, max_length=150)
    location_name: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = Field(None, max_length=300)
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    status: Optional[FarmStatus] = None
    description: Optional[str] = Field(None, max_length=1000)
    area: Optional[float] = Field(None, ge=0)
    tank_count: Optional[int] = Field(None, ge=0)


class FarmResponse(FarmBase):
    """Schema for farm API responses"""
    id: int
    user_id: Optional[int]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FarmSummary(FarmResponse):
    """Farm with device counts for lists"""
    device_count: int = Field(default=0, ge=0)
    active_device_count: int = Field(default=0, ge=0)
    owner_name: Optional[str] = None


class FarmStatistics(BaseModel):
    farm: FarmResponse
    device_count: int
    active_device_count: int
    inactive_device_count: int
    open_alert_count: int
    readings_last_24h: int


class UserCreate(BaseModel):
    """Schema for admin-side user creation"""
    user_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    role: UserRole = Field(default=UserRole.FARMER, description="Role of the user")
    phone: Optional[str] = Field(None, max_length=30)

    @validator('email')
    def normalize_email(cls, v):
        return v.lower()


class UserUpdate(BaseModel):
    """Schema for updating user information"""
    user_name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8, max_length=100)
    role: Optional[UserRole] = None
    phone: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None

    @validator('email')
    def normalize_email(cls, v):
        return v.lower() if v else v


class UserDetail(UserPublic):
    """User with their farm and device count"""
    farm: Optional[FarmResponse] = None
    device_count: int = 0


class UserStatus(BaseModel):
    id: int
    is_active: bool
