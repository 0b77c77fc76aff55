from datetime import datetime, timedelta

from app.models.alert import Alert
from app.models.device import SystemLog
from app.models.sensor import SensorReading

from conftest import API, auth_headers, make_device, make_user, reading_payload


def test_submit_reading_stores_and_derives_tds(client, db, device):
    response = client.post(f"{API}/sensor-data/", json=reading_payload())

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["device_id"] == "GP-TEST-001"
    assert data["tds_value"] == 0.96
    assert data["quality_flag"] == "valid"
    assert data["source"] == "http"
    assert data["ph"] == {"value": 6.5, "status": "normal"}
    assert data["timestamp"] == data["created_at"]

    db.expire_all()
    assert db.query(SensorReading).count() == 1
    assert db.query(SystemLog).filter(SystemLog.event == "SENSOR_READING").count() == 1
    assert db.get(type(device), device.id).last_activity is not None


def test_submit_accepts_legacy_shapes_and_lowercase_device_id(client, device):
    payload = {
        "deviceId": "gp-test-001",
        "ph": {"value": 6.6, "status": "normal"},
        "ec": {"value": 1.4},
        "temperature_water_c": {"value": 23.5},
        "temperature_air_c": 26,
        "humidity": 58,
        "light": 4100,
    }
    response = client.post(f"{API}/sensor-data/", json=payload)
    assert response.status_code == 201
    assert response.json()["data"]["water_temperature_c"] == 23.5


def test_submit_unknown_device_is_404(client):
    response = client.post(f"{API}/sensor-data/", json=reading_payload("NOPE"))
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_submit_invalid_values_is_400_and_stores_nothing(client, db, device):
    response = client.post(
        f"{API}/sensor-data/",
        json=reading_payload(ph_value="high", light_intensity=None),
    )
    assert response.status_code == 400
    message = response.json()["message"]
    assert "ph_value (not numeric)" in message
    assert "light_intensity (missing)" in message
    assert db.query(SensorReading).count() == 0


def test_submit_without_device_id_is_400(client):
    payload = reading_payload()
    payload.pop("device_id")
    assert client.post(f"{API}/sensor-data/", json=payload).status_code == 400


def test_oversized_integer_is_400(client, db, device):
    response = client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=10 ** 400))

    assert response.status_code == 400
    assert "ph_value (not numeric)" in response.json()["message"]
    assert db.query(SensorReading).count() == 0


def test_low_ph_reading_raises_low_alert(client, db, device):
    response = client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=5.4))

    assert response.status_code == 201
    assert response.json()["data"]["quality_flag"] == "suspect"
    alert = db.query(Alert).one()
    assert alert.alert_type == "ph_value_low"
    assert alert.parameter == "ph_value"
    assert alert.threshold_value == 6.0
    assert alert.actual_value == 5.4


def test_out_of_range_reading_raises_alert_once(client, db, device):
    client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=8.4))
    response = client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=8.6))

    assert response.json()["data"]["quality_flag"] == "suspect"
    alerts = db.query(Alert).all()
    assert len(alerts) == 1
    assert alerts[0].alert_type == "ph_value_high"


def test_latest_and_history(client, db, farmer, device):
    for ph in (6.1, 6.2, 6.3):
        client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=ph))
    headers = auth_headers(farmer)

    latest = client.get(f"{API}/sensor-data/GP-TEST-001/latest", headers=headers)
    assert latest.status_code == 200
    assert latest.json()["data"]["ph_value"] == 6.3

    history = client.get(f"{API}/sensor-data/{device.id}/history?limit=2", headers=headers)
    assert [r["ph_value"] for r in history.json()["data"]] == [6.3, 6.2]

    ranged = client.get(f"{API}/sensor-data/GP-TEST-001/history?range=1h", headers=headers)
    assert len(ranged.json()["data"]) == 3

    all_latest = client.get(f"{API}/sensor-data/latest", headers=headers)
    assert len(all_latest.json()["data"]) == 1


def test_history_excludes_readings_outside_window(client, db, farmer, device):
    old = SensorReading(
        data_id="old-reading",
        device_id=device.device_id,
        ph_value=6.0, ec_value=1.0, tds_value=0.64,
        water_temperature_c=22, air_temperature_c=25, light_intensity=4000,
        created_at=datetime.utcnow() - timedelta(days=3),
    )
    db.add(old)
    db.commit()
    client.post(f"{API}/sensor-data/", json=reading_payload())

    response = client.get(f"{API}/sensor-data/GP-TEST-001/history?range=24h", headers=auth_headers(farmer))
    assert len(response.json()["data"]) == 1

    response = client.get(f"{API}/sensor-data/GP-TEST-001/history", headers=auth_headers(farmer))
    assert len(response.json()["data"]) == 2


def test_history_rejects_unknown_range(client, farmer, device):
    response = client.get(f"{API}/sensor-data/GP-TEST-001/history?range=1y", headers=auth_headers(farmer))
    assert response.status_code == 400


def test_latest_without_readings_is_404(client, farmer, device):
    response = client.get(f"{API}/sensor-data/GP-TEST-001/latest", headers=auth_headers(farmer))
    assert response.status_code == 404


def test_other_users_device_is_hidden(client, db, device):
    stranger = make_user(db, "other@example.com", name="Other", with_farm=True)
    response = client.get(f"{API}/sensor-data/GP-TEST-001/history", headers=auth_headers(stranger))
    assert response.status_code == 404


def test_admin_sees_any_device(client, admin, device):
    client.post(f"{API}/sensor-data/", json=reading_payload())
    response = client.get(f"{API}/sensor-data/GP-TEST-001/latest", headers=auth_headers(admin))
    assert response.status_code == 200


def test_aggregate_defaults_to_hourly(client, farmer, device):
    client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=6.0))
    client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=7.0))

    response = client.get(f"{API}/sensor-data/GP-TEST-001/aggregate", headers=auth_headers(farmer))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["aggregation"] == "hourly"
    assert data["device_id"] == "GP-TEST-001"
    assert sum(b["count"] for b in data["buckets"]) == 2
    assert min(b["ph_value"]["min"] for b in data["buckets"]) == 6.0


def test_aggregate_rejects_unknown_granularity(client, farmer, device):
    response = client.get(
        f"{API}/sensor-data/GP-TEST-001/aggregate?aggregation=weekly",
        headers=auth_headers(farmer),
    )
    assert response.status_code == 400


def test_history_requires_authentication(client, device):
    assert client.get(f"{API}/sensor-data/GP-TEST-001/history").status_code == 401


def test_second_device_readings_are_separate(client, db, farmer, device):
    make_device(db, farmer, device_id="GP-TEST-002", name="Second")
    client.post(f"{API}/sensor-data/", json=reading_payload())
    client.post(f"{API}/sensor-data/", json=reading_payload("GP-TEST-002", ph_value=6.9))

    response = client.get(f"{API}/sensor-data/GP-TEST-002/history", headers=auth_headers(farmer))
    assert [r["ph_value"] for r in response.json()["data"]] == [6.9]
