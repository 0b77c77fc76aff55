"""
Alert model - Threshold violations raised while ingesting sensor readings
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum

from app.database import Base


class AlertSeverity(str, Enum):
    """Alert severity levels"""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Alert status"""
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# Statuses that still count as an open alert for deduplication
OPEN_ALERT_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)

# Terminal statuses
CLOSED_ALERT_STATUSES = (AlertStatus.RESOLVED, AlertStatus.DISMISSED)


class Alert(Base):
    """
    Alerts model
    Stores triggered alerts and their lifecycle status
    """
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(String(64), ForeignKey("devices.device_id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    farm_id = Column(Integer, ForeignKey("farms.id"), nullable=True, index=True)
    data_id = Column(String(36), nullable=True, comment="Reading that raised the alert")

    # Alert details
    alert_type = Column(String(50), nullable=False, comment="<parameter>_low or <parameter>_high")
    parameter = Column(String(50), nullable=False, index=True)
    threshold_value = Column(Float, nullable=True)
    actual_value = Column(Float, nullable=False)

    # Severity and status
    severity = Column(SQLEnum(AlertSeverity), nullable=False, default=AlertSeverity.WARNING, index=True)
    status = Column(SQLEnum(AlertStatus), nullable=False, default=AlertStatus.ACTIVE, index=True)

    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    # Timing
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    acknowledged_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    # User actions
    acknowledged_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Relationships
    device = relationship("Device", back_populates="alerts")

    __table_args__ = (
        Index('idx_alert_device_status', 'device_id', 'status'),
        Index('idx_alert_device_parameter_status', 'device_id', 'parameter', 'status'),
    )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_ALERT_STATUSES

    def __repr__(self):
        return f"<Alert(device_id='{self.device_id}', parameter='{self.parameter}', status='{self.status.value}')>"
