"""
Application configuration
Manages environment variables and application settings using Pydantic
"""

from typing import List, Optional
from pydantic import validator
from pydantic_settings import BaseSettings
import json


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Database Configuration
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # Security Settings
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    ALGORITHM: str = "HS256"

    # Application Settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    API_PREFIX: str = "/api/v1"
    WEBSOCKET_PATH: str = "/ws"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # MQTT Ingestion
    MQTT_ENABLED: bool = False
    MQTT_BROKER_URL: str = "mqtt://localhost:1883"
    MQTT_TOPIC: str = "devices/+/sensor"
    MQTT_QOS: int = 1
    MQTT_KEEPALIVE: int = 60

    # Alert Configuration
    ALERT_COOLDOWN_MINUTES: Optional[int] = None
    ALERT_CRITICAL_MARGIN: float = 0.25

    # Device Configuration
    MAX_DEVICES_PER_FARM: Optional[int] = None
    DEFAULT_SAMPLING_INTERVAL: int = 300

    @validator('CORS_ORIGINS', pre=True)
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v

    @validator('DEBUG', 'MQTT_ENABLED', 'DATABASE_ECHO', pre=True)
    def parse_bool(cls, v):
        if isinstance(v, str):
            return v.lower() in ('true', '1', 'yes', 'on')
        return v

    @validator('ALERT_COOLDOWN_MINUTES', 'MAX_DEVICES_PER_FARM', pre=True)
    def parse_optional_int(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Fixed EC -> TDS conversion factor
TDS_CONVERSION_FACTOR = 0.64

# Monitored parameters in evaluation order, with their configuration bound fields
MONITORED_PARAMETERS = {
    "ph_value": ("ph_min", "ph_max"),
    "ec_value": ("ec_value_min", "ec_value_max"),
    "light_intensity": ("light_intensity_min", "light_intensity_max"),
    "air_temperature_c": ("air_temp_min", "air_temp_max"),
    "water_temperature_c": ("water_temp_min", "water_temp_max"),
}

# Default configuration bounds for new devices (hydroponic operating ranges)
DEFAULT_THRESHOLDS = {
    "ph_min": 6.0,
    "ph_max": 7.5,
    "ec_value_min": 1.0,
    "ec_value_max": 2.5,
    "light_intensity_min": 3500.0,
    "light_intensity_max": 6000.0,
    "air_temp_min": 18.0,
    "air_temp_max": 35.0,
    "water_temp_min": 20.0,
    "water_temp_max": 28.0,
}

# Values outside these limits cannot come from a working sensor
PHYSICAL_LIMITS = {
    "ph_value": (0.0, 14.0),
    "ec_value": (0.0, None),
    "tds_value": (0.0, None),
    "water_temperature_c": (-40.0, 100.0),
    "air_temperature_c": (-40.0, 100.0),
    "air_humidity": (0.0, 100.0),
    "light_intensity": (0.0, None),
}

PARAMETER_LABELS = {
    "ph_value": {"label": "pH", "unit": ""},
    "ec_value": {"label": "EC", "unit": " mS/cm"},
    "tds_value": {"label": "TDS", "unit": " ppm"},
    "light_intensity": {"label": "Light", "unit": " lux"},
    "air_temperature_c": {"label": "Air Temp", "unit": "°C"},
    "water_temperature_c": {"label": "Water Temp", "unit": "°C"},
    "air_humidity": {"label": "Humidity", "unit": "%"},
}

# Look-back windows accepted by the history and aggregate endpoints (minutes)
HISTORY_RANGES = {
    "1h": 60,
    "24h": 24 * 60,
    "7d": 7 * 24 * 60,
    "30d": 30 * 24 * 60,
}

# Create settings instance
settings = Settings()
