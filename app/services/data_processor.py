"""
Data Processing Service
Handles reading normalisation, quality flags and time-bucket aggregation
"""

import logging
import math
import pandas as pd
from typing import Dict, List, Any, Optional, Tuple
from datetime import datetime, timedelta

from app.config import (
    DEFAULT_THRESHOLDS,
    HISTORY_RANGES,
    MONITORED_PARAMETERS,
    PHYSICAL_LIMITS,
    TDS_CONVERSION_FACTOR,
)
from app.core.exceptions import ValidationError
from app.models.sensor import QualityFlag
from app.schemas.sensor import SensorReadingResponse

logger = logging.getLogger(__name__)


# Accepted payload keys per canonical field, first match wins
HTTP_FIELD_ALIASES = {
    "ph_value": ("ph_value", "ph"),
    "ec_value": ("ec_value", "ec"),
    "tds_value": ("tds_value", "tds"),
    "water_temperature_c": ("water_temperature_c", "temperature_water_c"),
    "air_temperature_c": ("air_temperature_c", "temperature_air_c"),
    "air_humidity": ("air_humidity", "humidity"),
    "light_intensity": ("light_intensity", "light"),
}

MQTT_FIELD_ALIASES = {
    "ph_value": ("ph",),
    "ec_value": ("ec",),
    "tds_value": ("tds",),
    "water_temperature_c": ("water_temp",),
    "air_temperature_c": ("air_temp",),
    "air_humidity": ("humidity",),
    "light_intensity": ("light",),
}

REQUIRED_FIELDS = (
    "ph_value",
    "ec_value",
    "water_temperature_c",
    "air_temperature_c",
    "light_intensity",
)

AGGREGATED_FIELDS = (
    "ph_value",
    "ec_value",
    "tds_value",
    "water_temperature_c",
    "air_temperature_c",
    "air_humidity",
    "light_intensity",
)

AGGREGATION_RULES = {
    "hourly": "h",
    "daily": "D",
}


def parse_value(raw: Any) -> Optional[float]:
    """
    Coerce a submitted value to float

    Accepts numbers, numeric strings and the legacy `{value, status}` object.
    Returns None for anything that is not a finite number.
    """
    if isinstance(raw, dict):
        raw = raw.get("value")

    if raw is None or isinstance(raw, bool):
        return None

    if not isinstance(raw, (int, float, str)):
        return None

    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (OverflowError, ValueError):
        # Integers beyond float range overflow instead of giving inf
        return None

    if math.isnan(value) or math.isinf(value):
        return None
    return value


def compute_tds(ec_value: float) -> float:
    return round(ec_value * TDS_CONVERSION_FACTOR, 2)


def normalize_reading(payload: Dict[str, Any], field_aliases: Dict[str, Tuple[str, ...]]) -> Dict[str, Optional[float]]:
    """
    Map a raw submission onto canonical field names

    Raises ValidationError naming every required field that is missing or
    non-numeric, and every optional field that was supplied but is not a number.
    """
    values: Dict[str, Optional[float]] = {}
    problems = []

    for field, keys in field_aliases.items():
        raw = None
        supplied = False
        for key in keys:
            if key in payload and payload[key] is not None:
                raw = payload[key]
                supplied = True
                break

        value = parse_value(raw) if supplied else None
        if supplied and value is None:
            problems.append(f"{field} (not numeric)")
        elif not supplied and field in REQUIRED_FIELDS:
            problems.append(f"{field} (missing)")
        values[field] = value

    if problems:
        raise ValidationError("Invalid sensor data: " + ", ".join(problems))

    if values.get("tds_value") is None:
        values["tds_value"] = compute_tds(values["ec_value"])

    return values


def _outside(value: Optional[float], low: Optional[float], high: Optional[float]) -> bool:
    if value is None:
        return False
    if low is not None and value < low:
        return True
    if high is not None and value > high:
        return True
    return False


def quality_flag(values: Dict[str, Optional[float]], configuration=None) -> QualityFlag:
    """
    Grade a normalised reading

    `error` when a value is physically impossible, `suspect` when a monitored
    parameter is outside the device's configured bounds (default bounds when the
    device has no configuration), otherwise `valid`.
    """
    for field, (low, high) in PHYSICAL_LIMITS.items():
        if _outside(values.get(field), low, high):
            return QualityFlag.ERROR

    for parameter, (min_field, max_field) in MONITORED_PARAMETERS.items():
        if configuration is not None:
            low = getattr(configuration, min_field)
            high = getattr(configuration, max_field)
        else:
            low = DEFAULT_THRESHOLDS[min_field]
            high = DEFAULT_THRESHOLDS[max_field]
        if _outside(values.get(parameter), low, high):
            return QualityFlag.SUSPECT

    return QualityFlag.VALID


def serialize_reading(reading) -> Dict[str, Any]:
    """JSON-ready reading including compatibility aliases"""
    return SensorReadingResponse.from_reading(reading).model_dump(mode="json")


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None) - value.utcoffset()
    return value


def resolve_time_window(
    range_key: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    default_range: Optional[str] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Turn a `range` shortcut or explicit dates into a (start, end) pair

    A range counts back from now and takes precedence over start_date.
    Either side may be None, meaning unbounded.
    """
    start = _to_naive_utc(start_date)
    end = _to_naive_utc(end_date)

    key = range_key or (default_range if start is None else None)
    if key:
        if key not in HISTORY_RANGES:
            raise ValidationError(
                f"Invalid range '{key}'. Use one of: {', '.join(HISTORY_RANGES)}"
            )
        start = datetime.utcnow() - timedelta(minutes=HISTORY_RANGES[key])

    if start is not None and end is not None and start > end:
        raise ValidationError("start_date must be before end_date")

    return start, end


def _clean_stat(value) -> Optional[float]:
    if pd.isna(value):
        return None
    return round(float(value), 2)


def aggregate_readings(readings, aggregation: str = "hourly") -> List[Dict[str, Any]]:
    """
    Bucket readings by hour or day

    Each bucket reports its start, the reading count and mean/min/max per
    parameter. Buckets without readings are omitted.
    """
    rule = AGGREGATION_RULES.get(aggregation)
    if rule is None:
        raise ValidationError(
            f"Invalid aggregation '{aggregation}'. Use one of: {', '.join(AGGREGATION_RULES)}"
        )

    if not readings:
        return []

    # Convert to DataFrame for easier calculations
    df_data = []
    for record in readings:
        row = {"created_at": record.created_at}
        for field in AGGREGATED_FIELDS:
            row[field] = getattr(record, field)
        df_data.append(row)

    df = pd.DataFrame(df_data)
    df["created_at"] = pd.to_datetime(df["created_at"])
    df = df.set_index("created_at").sort_index()
    df = df[list(AGGREGATED_FIELDS)].astype(float)

    resampled = df.resample(rule)
    stats = resampled.agg(["mean", "min", "max"])
    counts = resampled.size()

    buckets = []
    for period_start, count in counts.items():
        if count == 0:
            continue
        bucket = {
            "period_start": period_start.to_pydatetime(),
            "count": int(count),
        }
        for field in AGGREGATED_FIELDS:
            bucket[field] = {
                stat: _clean_stat(stats.loc[period_start, (field, stat)])
                for stat in ("mean", "min", "max")
            }
        buckets.append(bucket)

    logger.debug(f"Aggregated {len(readings)} readings into {len(buckets)} {aggregation} buckets")
    return buckets
