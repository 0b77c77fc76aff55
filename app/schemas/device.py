"""
Pydantic schemas for devices and their configuration
"""

from pydantic import BaseModel, Field, ValidationInfo, field_validator, validator
from typing import Optional, Dict, Any
from datetime import datetime

from app.models.device import DeviceStatus, Connectivity, LogType


class ConfigurationBase(BaseModel):
    """Sampling and threshold settings shared by create/update/response"""
    mqtt_topic: Optional[str] = Field(None, max_length=200)
    alert_enabled: Optional[bool] = None
    sampling_interval: Optional[int] = Field(None, ge=1, description="Seconds between readings")
    ph_min: Optional[float] = Field(None, ge=0, le=14)
    ph_max: Optional[float] = Field(None, ge=0, le=14)
    ec_value_min: Optional[float] = Field(None, ge=0)
    ec_value_max: Optional[float] = Field(None, ge=0)
    light_intensity_min: Optional[float] = Field(None, ge=0)
    light_intensity_max: Optional[float] = Field(None, ge=0)
    air_temp_min: Optional[float] = None
    air_temp_max: Optional[float] = None
    water_temp_min: Optional[float] = None
    water_temp_max: Optional[float] = None


class ConfigurationUpdate(ConfigurationBase):
    """Schema for updating a device configuration"""

    @field_validator('ph_max', 'ec_value_max', 'light_intensity_max', 'air_temp_max', 'water_temp_max')
    @classmethod
    def validate_max_greater_than_min(cls, v, info: ValidationInfo):
        """Ensure max threshold is greater than min threshold"""
        min_val = info.data.get(info.field_name.replace('_max', '_min'))
        if v is not None and min_val is not None and v <= min_val:
            raise ValueError(f'{info.field_name} must be greater than the matching minimum')
        return v


class ConfigurationResponse(ConfigurationBase):
    id: int
    device_id: int
    mqtt_topic: str
    alert_enabled: bool
    sampling_interval: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeviceBase(BaseModel):
    device_name: str = Field(..., min_length=1, max_length=150)
    location: Optional[str] = Field(None, max_length=200)
    status: DeviceStatus = DeviceStatus.ACTIVE
    device_type: str = Field("greenpulse-v1", max_length=50)
    firmware_version: Optional[str] = Field(None, max_length=50)
    mac_address: Optional[str] = Field(None, max_length=50)
    connectivity: Connectivity = Connectivity.WIFI


class DeviceCreate(DeviceBase):
    """Schema for registering a device; ids are generated when omitted"""
    device_id: Optional[str] = Field(None, min_length=3, max_length=64)
    farm_id: Optional[int] = Field(None, gt=0)
    user_id: Optional[int] = Field(None, gt=0, description="Owner, admin only")
    mqtt_topic: Optional[str] = Field(None, max_length=200)
    alert_enabled: bool = True
    sampling_interval: Optional[int] = Field(None, ge=1)

    @validator('device_id')
    def normalize_device_id(cls, v):
        return v.strip().upper() if v else v


class DeviceUpdate(BaseModel):
    """Schema for updating device information"""
    device_name: Optional[str] = Field(None, min_length=1, max_length=150)
    location: Optional[str] = Field(None, max_length=200)
    status: Optional[DeviceStatus] = None
    device_type: Optional[str] = Field(None, max_length=50)
    firmware_version: Optional[str] = Field(None, max_length=50)
    mac_address: Optional[str] = Field(None, max_length=50)
    connectivity: Optional[Connectivity] = None


class DeviceStatusUpdate(BaseModel):
    status: DeviceStatus


class DeviceResponse(DeviceBase):
    id: int
    device_id: str
    farm_id: int
    user_id: Optional[int]
    last_activity: Optional[datetime] = None
    latest_alert_id: Optional[int] = None
    configuration: Optional[ConfigurationResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SystemLogResponse(BaseModel):
    id: int
    device_id: int
    config_id: Optional[int]
    log_type: LogType
    event: str
    message: str
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
