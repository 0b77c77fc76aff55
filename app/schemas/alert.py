"""
Pydantic schemas for the alert system
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.models.alert import AlertSeverity, AlertStatus


class AlertResponse(BaseModel):
    """Alert API response"""
    id: int
    device_id: str
    user_id: Optional[int] = None
    farm_id: Optional[int] = None
    data_id: Optional[str] = None
    alert_type: str
    parameter: str
    threshold_value: Optional[float] = None
    actual_value: float
    severity: AlertSeverity
    status: AlertStatus
    title: str
    message: str
    created_at: datetime
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    acknowledged_by: Optional[int] = None
    resolved_by: Optional[int] = None

    class Config:
        from_attributes = True


class AlertBroadcast(AlertResponse):
    """Alert as pushed to WebSocket subscribers"""
    device_name: Optional[str] = None


class AlertResolve(BaseModel):
    """Schema for resolving alerts in bulk"""
    alert_ids: List[int] = Field(..., min_length=1, max_length=100)


class AlertBulkResult(BaseModel):
    resolved: List[int] = []
    skipped: List[int] = []
