"""
Pydantic schemas for sensor reading endpoints
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.models.sensor import QualityFlag, ReadingSource


class MetricValue(BaseModel):
    """Legacy `{value, status}` shape still read by older dashboards"""
    value: float
    status: str = "normal"


class SensorReadingResponse(BaseModel):
    """Stored reading with canonical fields plus compatibility aliases"""
    id: int
    data_id: str
    device_id: str
    ph_value: float
    ec_value: float
    tds_value: float
    water_temperature_c: float
    air_temperature_c: float
    air_humidity: Optional[float] = None
    light_intensity: float
    quality_flag: QualityFlag
    source: ReadingSource
    created_at: datetime
    timestamp: datetime

    # Aliases
    ph: Optional[MetricValue] = None
    ec: Optional[MetricValue] = None
    tds: Optional[MetricValue] = None
    temperature_water_c: Optional[MetricValue] = None
    temperature_air_c: Optional[MetricValue] = None
    humidity: Optional[MetricValue] = None

    @classmethod
    def from_reading(cls, reading) -> "SensorReadingResponse":
        def metric(value):
            return MetricValue(value=value) if value is not None else None

        return cls(
            id=reading.id,
            data_id=reading.data_id,
            device_id=reading.device_id,
            ph_value=reading.ph_value,
            ec_value=reading.ec_value,
            tds_value=reading.tds_value,
            water_temperature_c=reading.water_temperature_c,
            air_temperature_c=reading.air_temperature_c,
            air_humidity=reading.air_humidity,
            light_intensity=reading.light_intensity,
            quality_flag=reading.quality_flag,
            source=reading.source,
            created_at=reading.created_at,
            timestamp=reading.created_at,
            ph=metric(reading.ph_value),
            ec=metric(reading.ec_value),
            tds=metric(reading.tds_value),
            temperature_water_c=metric(reading.water_temperature_c),
            temperature_air_c=metric(reading.air_temperature_c),
            humidity=metric(reading.air_humidity),
        )


class ParameterStats(BaseModel):
    mean: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None


class AggregateBucket(BaseModel):
    """Statistics for one hourly or daily bucket"""
    period_start: datetime
    count: int = Field(..., ge=0)
    ph_value: ParameterStats
    ec_value: ParameterStats
    tds_value: ParameterStats
    water_temperature_c: ParameterStats
    air_temperature_c: ParameterStats
    air_humidity: ParameterStats
    light_intensity: ParameterStats


class AggregateResponse(BaseModel):
    device_id: str
    aggregation: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    buckets: List[AggregateBucket] = []
