"""
Alert Processing Engine
Checks each stored reading against its device's thresholds, deduplicates
against open alerts and pushes new alerts to WebSocket subscribers
"""

import logging
from typing import Dict, List, Optional, Tuple
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc

from app.config import settings, MONITORED_PARAMETERS, PARAMETER_LABELS
from app.core.exceptions import ValidationError
from app.models.alert import Alert, AlertSeverity, AlertStatus, OPEN_ALERT_STATUSES
from app.models.device import Device
from app.models.sensor import SensorReading
from app.schemas.alert import AlertBroadcast

logger = logging.getLogger(__name__)


# Allowed status changes; resolved and dismissed are terminal
ALERT_TRANSITIONS = {
    AlertStatus.ACTIVE: (AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.DISMISSED),
    AlertStatus.ACKNOWLEDGED: (AlertStatus.RESOLVED, AlertStatus.DISMISSED),
}


def classify(
    value: Optional[float],
    min_value: Optional[float],
    max_value: Optional[float]
) -> Optional[Tuple[str, float]]:
    """
    Compare a value against its bounds

    Returns ("low", min) or ("high", max) for a violation, None when the value
    is in range or cannot be checked. Comparisons are strict.
    """
    if value is None:
        return None
    if min_value is not None and value < min_value:
        return "low", min_value
    if max_value is not None and value > max_value:
        return "high", max_value
    return None


def determine_severity(
    value: float,
    threshold: float,
    min_value: Optional[float],
    max_value: Optional[float],
    margin: Optional[float] = None
) -> AlertSeverity:
    """
    Critical once the value is further past the crossed bound than the margin
    allows, warning otherwise

    The margin is a fraction of the band width, or of the bound itself when the
    parameter only has one bound.
    """
    if margin is None:
        margin = settings.ALERT_CRITICAL_MARGIN

    if min_value is not None and max_value is not None:
        span = max_value - min_value
    else:
        span = abs(threshold)

    if abs(value - threshold) > margin * span:
        return AlertSeverity.CRITICAL
    return AlertSeverity.WARNING


def _format_number(value: float) -> str:
    return f"{value:g}"


def build_alert_text(parameter: str, direction: str, value: float, threshold: float, device_name: str) -> Dict[str, str]:
    meta = PARAMETER_LABELS.get(parameter, {"label": parameter, "unit": ""})
    label, unit = meta["label"], meta["unit"]
    return {
        "title": f"{label} too {direction} on {device_name}",
        "message": (
            f"{label} measured {_format_number(value)}{unit} "
            f"while {direction} threshold is {_format_number(threshold)}{unit}"
        ),
    }


def find_open_alert(db: Session, device_id: str, parameter: str) -> Optional[Alert]:
    """
    Latest active or acknowledged alert for a device and parameter

    With ALERT_COOLDOWN_MINUTES set, only alerts raised inside the cooldown
    window count.
    """
    conditions = [
        Alert.device_id == device_id,
        Alert.parameter == parameter,
        Alert.status.in_(OPEN_ALERT_STATUSES),
    ]
    if settings.ALERT_COOLDOWN_MINUTES:
        window_start = datetime.utcnow() - timedelta(minutes=settings.ALERT_COOLDOWN_MINUTES)
        conditions.append(Alert.created_at >= window_start)

    return db.query(Alert).filter(and_(*conditions)).order_by(desc(Alert.created_at)).first()


class AlertEvaluator:
    """
    Threshold evaluator shared by HTTP and MQTT ingestion

    The dedup lookup, insert and commit run without yielding to the event
    loop, so within one process two readings for the same device cannot
    both miss each other's alert. Broadcasts happen after the commit.
    """

    def __init__(self, manager=None):
        self.manager = manager

    async def evaluate(self, db: Session, device: Device, reading: SensorReading) -> List[Alert]:
        """
        Raise alerts for every out-of-range parameter of a stored reading

        No-op when the device has no configuration or alerts are disabled.
        Returns the alerts created in this pass.
        """
        configuration = device.configuration
        if configuration is None or not configuration.alert_enabled:
            return []

        created: List[Alert] = []

        for parameter, (min_field, max_field) in MONITORED_PARAMETERS.items():
            value = getattr(reading, parameter)
            min_value = getattr(configuration, min_field)
            max_value = getattr(configuration, max_field)

            violation = classify(value, min_value, max_value)
            if violation is None:
                continue
            direction, threshold = violation

            existing = find_open_alert(db, device.device_id, parameter)
            if existing is not None:
                logger.info(
                    f"Suppressed duplicate {parameter}_{direction} alert for {device.device_id} "
                    f"(open alert {existing.id})"
                )
                continue

            text = build_alert_text(parameter, direction, value, threshold, device.device_name)
            alert = Alert(
                device_id=device.device_id,
                user_id=device.user_id,
                farm_id=device.farm_id,
                data_id=reading.data_id,
                alert_type=f"{parameter}_{direction}",
                parameter=parameter,
                threshold_value=threshold,
                actual_value=value,
                severity=determine_severity(value, threshold, min_value, max_value),
                status=AlertStatus.ACTIVE,
                title=text["title"],
                message=text["message"],
                created_at=datetime.utcnow(),
            )
            db.add(alert)
            db.flush()
            created.append(alert)

        if created:
            device.latest_alert_id = created[-1].id
            db.commit()
            for alert in created:
                db.refresh(alert)
                logger.info(
                    f"Alert {alert.id} raised for {device.device_id}: "
                    f"{alert.alert_type} ({alert.severity.value})"
                )

        for alert in created:
            await self._broadcast(device, alert)

        return created

    async def _broadcast(self, device: Device, alert: Alert):
        if self.manager is None:
            return
        payload = AlertBroadcast.model_validate(alert).model_copy(update={"device_name": device.device_name})
        await self.manager.broadcast(
            {"type": "alert", "data": payload.model_dump(mode="json")},
            device_id=device.device_id,
            user_id=device.user_id,
        )


def transition_alert(alert: Alert, target: AlertStatus, user_id: Optional[int] = None) -> Alert:
    """
    Move an alert to a new lifecycle status

    Stamps who and when for acknowledge, resolve and dismiss. The caller commits.
    """
    allowed = ALERT_TRANSITIONS.get(alert.status, ())
    if target not in allowed:
        raise ValidationError(
            f"Cannot change alert {alert.id} from {alert.status.value} to {target.value}"
        )

    now = datetime.utcnow()
    if target == AlertStatus.ACKNOWLEDGED:
        alert.acknowledged_at = now
        alert.acknowledged_by = user_id
    else:
        alert.resolved_at = now
        alert.resolved_by = user_id

    alert.status = target
    return alert
