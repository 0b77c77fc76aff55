from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationError
from app.models.sensor import QualityFlag
from app.services.data_processor import (
    HTTP_FIELD_ALIASES,
    MQTT_FIELD_ALIASES,
    aggregate_readings,
    compute_tds,
    normalize_reading,
    parse_value,
    quality_flag,
    resolve_time_window,
)


def test_parse_value_accepts_numbers_strings_and_value_objects():
    assert parse_value(6.5) == 6.5
    assert parse_value(7) == 7.0
    assert parse_value(" 1.25 ") == 1.25
    assert parse_value({"value": 24.1, "status": "normal"}) == 24.1


@pytest.mark.parametrize("raw", [None, True, "abc", float("nan"), float("inf"), 10 ** 400, [1], {"status": "ok"}])
def test_parse_value_rejects_non_numbers(raw):
    assert parse_value(raw) is None


def test_normalize_http_payload_with_aliases_and_derived_tds():
    values = normalize_reading(
        {
            "ph": {"value": 6.2},
            "ec": 2.0,
            "temperature_water_c": 23,
            "temperature_air_c": {"value": 29, "status": "normal"},
            "humidity": 55,
            "light_intensity": 5000,
        },
        HTTP_FIELD_ALIASES,
    )
    assert values["ph_value"] == 6.2
    assert values["water_temperature_c"] == 23.0
    assert values["air_temperature_c"] == 29.0
    assert values["air_humidity"] == 55.0
    assert values["tds_value"] == 1.28


def test_canonical_name_wins_over_alias():
    values = normalize_reading(
        {"ph_value": 6.0, "ph": 9.0, "ec_value": 1, "water_temperature_c": 20,
         "air_temperature_c": 20, "light_intensity": 4000},
        HTTP_FIELD_ALIASES,
    )
    assert values["ph_value"] == 6.0


def test_supplied_tds_is_kept():
    values = normalize_reading(
        {"ph_value": 6.0, "ec_value": 1, "tds_value": 700, "water_temperature_c": 20,
         "air_temperature_c": 20, "light_intensity": 4000},
        HTTP_FIELD_ALIASES,
    )
    assert values["tds_value"] == 700.0


def test_zero_ec_still_derives_tds():
    values = normalize_reading(
        {"ph_value": 6.0, "ec_value": 0, "water_temperature_c": 20,
         "air_temperature_c": 20, "light_intensity": 4000},
        HTTP_FIELD_ALIASES,
    )
    assert values["tds_value"] == 0.0


def test_normalize_mqtt_payload():
    values = normalize_reading(
        {"ph": 6.8, "ec": 1.8, "water_temp": 24, "air_temp": 28, "humidity": 65, "light": 5000},
        MQTT_FIELD_ALIASES,
    )
    assert values["ph_value"] == 6.8
    assert values["light_intensity"] == 5000.0
    assert values["tds_value"] == compute_tds(1.8)


def test_missing_and_non_numeric_fields_are_all_reported():
    with pytest.raises(ValidationError) as exc_info:
        normalize_reading(
            {"ph_value": "acidic", "ec_value": 1.2, "air_temperature_c": 25, "air_humidity": "wet"},
            HTTP_FIELD_ALIASES,
        )
    message = exc_info.value.message
    assert message.startswith("Invalid sensor data:")
    assert "ph_value (not numeric)" in message
    assert "water_temperature_c (missing)" in message
    assert "light_intensity (missing)" in message
    assert "air_humidity (not numeric)" in message


def test_humidity_is_optional():
    values = normalize_reading(
        {"ph_value": 6.0, "ec_value": 1, "water_temperature_c": 20,
         "air_temperature_c": 20, "light_intensity": 4000},
        HTTP_FIELD_ALIASES,
    )
    assert values["air_humidity"] is None


def _values(**overrides):
    values = {
        "ph_value": 6.5,
        "ec_value": 1.5,
        "tds_value": 960.0,
        "water_temperature_c": 24.0,
        "air_temperature_c": 27.0,
        "air_humidity": 60.0,
        "light_intensity": 4500.0,
    }
    values.update(overrides)
    return values


def test_quality_flag_grades():
    assert quality_flag(_values()) == QualityFlag.VALID
    assert quality_flag(_values(ph_value=8.1)) == QualityFlag.SUSPECT
    assert quality_flag(_values(ph_value=15)) == QualityFlag.ERROR
    assert quality_flag(_values(air_humidity=120)) == QualityFlag.ERROR


def test_quality_flag_uses_device_bounds():
    configuration = SimpleNamespace(
        ph_min=5.0, ph_max=9.0,
        ec_value_min=None, ec_value_max=None,
        light_intensity_min=None, light_intensity_max=None,
        air_temp_min=None, air_temp_max=None,
        water_temp_min=None, water_temp_max=None,
    )
    assert quality_flag(_values(ph_value=8.1, light_intensity=100), configuration) == QualityFlag.VALID


def test_resolve_time_window_range_takes_precedence():
    explicit_start = datetime(2020, 1, 1)
    start, end = resolve_time_window("1h", explicit_start, None)
    assert start > datetime.utcnow() - timedelta(minutes=61)
    assert end is None


def test_resolve_time_window_defaults():
    assert resolve_time_window() == (None, None)
    start, _ = resolve_time_window(default_range="24h")
    assert start < datetime.utcnow() - timedelta(hours=23)


def test_resolve_time_window_rejects_bad_input():
    with pytest.raises(ValidationError):
        resolve_time_window("2w")
    with pytest.raises(ValidationError):
        resolve_time_window(None, datetime(2024, 2, 1), datetime(2024, 1, 1))


def _reading(created_at, **overrides):
    return SimpleNamespace(created_at=created_at, **_values(**overrides))


def test_aggregate_hourly_buckets():
    base = datetime(2024, 5, 1, 10, 0)
    readings = [
        _reading(base + timedelta(minutes=5), ph_value=6.0),
        _reading(base + timedelta(minutes=35), ph_value=7.0),
        _reading(base + timedelta(hours=2, minutes=10), ph_value=6.4, air_humidity=None),
    ]

    buckets = aggregate_readings(readings, "hourly")

    assert [b["count"] for b in buckets] == [2, 1]
    assert buckets[0]["period_start"] == base
    assert buckets[0]["ph_value"] == {"mean": 6.5, "min": 6.0, "max": 7.0}
    assert buckets[1]["period_start"] == base + timedelta(hours=2)
    assert buckets[1]["air_humidity"] == {"mean": None, "min": None, "max": None}


def test_aggregate_daily_and_empty():
    base = datetime(2024, 5, 1, 23, 0)
    readings = [_reading(base), _reading(base + timedelta(hours=2))]
    buckets = aggregate_readings(readings, "daily")
    assert [b["count"] for b in buckets] == [1, 1]
    assert aggregate_readings([], "daily") == []


def test_aggregate_rejects_unknown_granularity():
    with pytest.raises(ValidationError):
        aggregate_readings([], "weekly")
