"""
Sensor reading model - Stores every measurement pushed by a device
Readings are immutable once written
"""

from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Index, String, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base


class QualityFlag(str, enum.Enum):
    VALID = "valid"
    SUSPECT = "suspect"
    ERROR = "error"


class ReadingSource(str, enum.Enum):
    HTTP = "http"
    MQTT = "mqtt"


class SensorReading(Base):
    """
    Sensor Reading model
    One row per submission, one column per monitored parameter
    """
    __tablename__ = "sensor_readings"

    id = Column(Integer, primary_key=True, index=True)
    data_id = Column(String(36), unique=True, index=True, nullable=False)
    device_id = Column(String(64), ForeignKey("devices.device_id"), nullable=False, index=True)

    # Nutrient solution
    ph_value = Column(Float, nullable=False, comment="pH level (0-14)")
    ec_value = Column(Float, nullable=False, comment="Electrical conductivity in mS/cm")
    tds_value = Column(Float, nullable=False, comment="Total dissolved solids")
    water_temperature_c = Column(Float, nullable=False, comment="Water temperature in Celsius")

    # Environment
    air_temperature_c = Column(Float, nullable=False, comment="Air temperature in Celsius")
    air_humidity = Column(Float, nullable=True, comment="Relative humidity in percent")
    light_intensity = Column(Float, nullable=False, comment="Light intensity in lux")

    quality_flag = Column(Enum(QualityFlag), nullable=False, default=QualityFlag.VALID)
    source = Column(Enum(ReadingSource), nullable=False, default=ReadingSource.HTTP)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    device = relationship("Device", back_populates="readings")

    __table_args__ = (
        Index('idx_reading_device_created', 'device_id', 'created_at'),
    )

    @property
    def timestamp(self):
        return self.created_at

    def __repr__(self):
        return f"<SensorReading(device_id='{self.device_id}', created_at={self.created_at}, ph={self.ph_value})>"
