"""
Device registration helpers shared by the devices API and the seed script
"""

import secrets
import string
import time
from typing import Optional
from sqlalchemy.orm import Session

from app.config import settings, DEFAULT_THRESHOLDS
from app.models.device import Device, DeviceConfiguration, SystemLog, LogType

BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_device_id() -> str:
    """GREENPULSE-V1-<base36 epoch millis>-<5 random base36 chars>"""
    timestamp = to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(5))
    return f"GREENPULSE-V1-{timestamp}-{random_part}"


def default_mqtt_topic(device_id: str) -> str:
    return f"devices/{device_id}/sensor"


def create_default_configuration(
    device: Device,
    db: Session,
    mqtt_topic: Optional[str] = None,
    alert_enabled: bool = True,
    sampling_interval: Optional[int] = None,
) -> DeviceConfiguration:
    """
    Attach a configuration with the default hydroponic thresholds
    """
    configuration = DeviceConfiguration(
        device=device,
        mqtt_topic=mqtt_topic or default_mqtt_topic(device.device_id),
        alert_enabled=alert_enabled,
        sampling_interval=sampling_interval or settings.DEFAULT_SAMPLING_INTERVAL,
        **DEFAULT_THRESHOLDS
    )
    db.add(configuration)
    return configuration


def log_device_event(
    device: Device,
    db: Session,
    event: str,
    message: str,
    details: Optional[dict] = None,
    log_type: LogType = LogType.INFO,
) -> SystemLog:
    entry = SystemLog(
        device_id=device.id,
        config_id=device.configuration.id if device.configuration else None,
        log_type=log_type,
        event=event,
        message=message,
        details=details,
    )
    db.add(entry)
    return entry
