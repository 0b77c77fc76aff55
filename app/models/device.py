"""
Device models
Sensor devices, their per-device threshold configuration and the audit log
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Index, Enum, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base


class DeviceStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    ERROR = "error"


class Connectivity(str, enum.Enum):
    WIFI = "wifi"
    ETHERNET = "ethernet"
    CELLULAR = "cellular"


class LogType(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Device(Base):
    """
    Device model
    An IoT sensor node identified externally by its device_id
    """
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String(64), unique=True, index=True, nullable=False)

    # Ownership
    farm_id = Column(Integer, ForeignKey("farms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    # Basic information
    device_name = Column(String(150), nullable=False)
    location = Column(String(200), nullable=True)
    status = Column(Enum(DeviceStatus), nullable=False, default=DeviceStatus.ACTIVE, index=True)

    # Hardware
    device_type = Column(String(50), nullable=False, default="greenpulse-v1")
    firmware_version = Column(String(50), nullable=True)
    mac_address = Column(String(50), nullable=True)
    connectivity = Column(Enum(Connectivity), nullable=False, default=Connectivity.WIFI)

    # Activity tracking
    last_activity = Column(DateTime, nullable=True)
    latest_alert_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    farm = relationship("Farm", back_populates="devices")
    owner = relationship("User", back_populates="devices")
    configuration = relationship(
        "DeviceConfiguration",
        back_populates="device",
        uselist=False,
        cascade="all, delete-orphan"
    )
    logs = relationship("SystemLog", back_populates="device", cascade="all, delete-orphan")
    readings = relationship("SensorReading", back_populates="device", cascade="all, delete-orphan")
    alerts = relationship("Alert", back_populates="device", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_device_farm_status', 'farm_id', 'status'),
    )

    def __repr__(self):
        return f"<Device(device_id='{self.device_id}', status='{self.status.value}')>"


class DeviceConfiguration(Base):
    """
    Per-device sampling and alert threshold configuration
    """
    __tablename__ = "device_configurations"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id"), nullable=False, unique=True, index=True)

    mqtt_topic = Column(String(200), nullable=False)
    alert_enabled = Column(Boolean, nullable=False, default=True)
    sampling_interval = Column(Integer, nullable=False, default=300, comment="Seconds between readings")

    # Threshold bounds
    ph_min = Column(Float, nullable=True)
    ph_max = Column(Float, nullable=True)
    ec_value_min = Column(Float, nullable=True, comment="mS/cm")
    ec_value_max = Column(Float, nullable=True, comment="mS/cm")
    light_intensity_min = Column(Float, nullable=True, comment="lux")
    light_intensity_max = Column(Float, nullable=True, comment="lux")
    air_temp_min = Column(Float, nullable=True, comment="Celsius")
    air_temp_max = Column(Float, nullable=True, comment="Celsius")
    water_temp_min = Column(Float, nullable=True, comment="Celsius")
    water_temp_max = Column(Float, nullable=True, comment="Celsius")

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    device = relationship("Device", back_populates="configuration")

    def __repr__(self):
        return f"<DeviceConfiguration(device_id={self.device_id}, alert_enabled={self.alert_enabled})>"


class SystemLog(Base):
    """
    Append-only audit record of configuration changes and ingestion events
    """
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id"), nullable=False, index=True)
    config_id = Column(Integer, ForeignKey("device_configurations.id"), nullable=True)

    log_type = Column(Enum(LogType), nullable=False, default=LogType.INFO)
    event = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), index=True)

    device = relationship("Device", back_populates="logs")
    configuration = relationship("DeviceConfiguration")

    __table_args__ = (
        Index('idx_log_device_created', 'device_id', 'created_at'),
    )

    def __repr__(self):
        return f"<SystemLog(device_id={self.device_id}, event='{self.event}')>"
