from app.config import settings
from app.models.alert import Alert
from app.models.device import Device, DeviceConfiguration, SystemLog
from app.models.sensor import SensorReading

from conftest import API, auth_headers, make_device, make_user, reading_payload


def test_register_device_with_generated_id_and_default_configuration(client, db, farmer):
    response = client.post(
        f"{API}/devices/",
        json={"device_name": "Greenhouse Node", "location": "Bed 3"},
        headers=auth_headers(farmer),
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["device_id"].startswith("GREENPULSE-V1-")
    assert data["farm_id"] == farmer.farm.id
    assert data["user_id"] == farmer.id
    configuration = data["configuration"]
    assert configuration["mqtt_topic"] == f"devices/{data['device_id']}/sensor"
    assert configuration["alert_enabled"] is True
    assert configuration["ph_min"] == 6.0
    assert configuration["ph_max"] == 7.5
    assert configuration["sampling_interval"] == settings.DEFAULT_SAMPLING_INTERVAL

    events = [log.event for log in db.query(SystemLog).all()]
    assert events == ["DEVICE_REGISTERED"]


def test_register_with_explicit_id_normalises_and_rejects_duplicates(client, farmer):
    headers = auth_headers(farmer)
    first = client.post(f"{API}/devices/", json={"device_name": "A", "device_id": " gp-abc "}, headers=headers)
    assert first.json()["data"]["device_id"] == "GP-ABC"

    duplicate = client.post(f"{API}/devices/", json={"device_name": "B", "device_id": "GP-ABC"}, headers=headers)
    assert duplicate.status_code == 400
    assert "already exists" in duplicate.json()["message"]


def test_register_without_farm_fails(client, db):
    farmless = make_user(db, "nofarm@example.com", name="No Farm")
    response = client.post(f"{API}/devices/", json={"device_name": "A"}, headers=auth_headers(farmless))
    assert response.status_code == 400


def test_device_limit_per_farm(client, farmer, monkeypatch):
    monkeypatch.setattr(settings, "MAX_DEVICES_PER_FARM", 1)
    headers = auth_headers(farmer)
    assert client.post(f"{API}/devices/", json={"device_name": "A"}, headers=headers).status_code == 201
    assert client.post(f"{API}/devices/", json={"device_name": "B"}, headers=headers).status_code == 400


def test_admin_registers_device_for_user(client, admin, farmer):
    response = client.post(
        f"{API}/devices/",
        json={"device_name": "Managed", "user_id": farmer.id},
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    assert response.json()["data"]["user_id"] == farmer.id


def test_viewer_cannot_register_devices(client, viewer):
    response = client.post(f"{API}/devices/", json={"device_name": "A"}, headers=auth_headers(viewer))
    assert response.status_code == 403


def test_get_by_numeric_or_external_id(client, farmer, device):
    headers = auth_headers(farmer)
    by_id = client.get(f"{API}/devices/{device.id}", headers=headers)
    by_external = client.get(f"{API}/devices/gp-test-001", headers=headers)
    assert by_id.json()["data"]["device_id"] == "GP-TEST-001"
    assert by_external.json()["data"]["id"] == device.id


def test_digit_identifier_prefers_external_id(client, db, farmer, device):
    numeric = make_device(db, farmer, device_id=str(device.id), name="Numbered")
    headers = auth_headers(farmer)

    exact = client.get(f"{API}/devices/{device.id}", headers=headers).json()["data"]
    assert exact["id"] == numeric.id
    assert exact["device_name"] == "Numbered"

    fallback = client.get(f"{API}/devices/{numeric.id}", headers=headers).json()["data"]
    assert fallback["device_id"] == str(device.id)


def test_list_devices_is_scoped(client, db, farmer, admin, device):
    other = make_user(db, "other@example.com", name="Other", with_farm=True)
    assert client.get(f"{API}/devices/", headers=auth_headers(other)).json()["data"] == []
    assert len(client.get(f"{API}/devices/", headers=auth_headers(farmer)).json()["data"]) == 1
    assert len(client.get(f"{API}/devices/", headers=auth_headers(admin)).json()["data"]) == 1
    assert client.get(f"{API}/devices/GP-TEST-001", headers=auth_headers(other)).status_code == 404


def test_update_device_and_status(client, db, farmer, device):
    headers = auth_headers(farmer)
    updated = client.put(f"{API}/devices/GP-TEST-001", json={"device_name": "Renamed"}, headers=headers)
    assert updated.json()["data"]["device_name"] == "Renamed"

    status = client.patch(f"{API}/devices/GP-TEST-001/status", json={"status": "maintenance"}, headers=headers)
    assert status.status_code == 200
    assert status.json()["data"]["status"] == "maintenance"

    invalid = client.patch(f"{API}/devices/GP-TEST-001/status", json={"status": "broken"}, headers=headers)
    assert invalid.status_code == 400

    logs = client.get(f"{API}/devices/GP-TEST-001/logs", headers=headers).json()["data"]
    assert logs[0]["event"] == "STATUS_CHANGE"
    assert logs[0]["details"] == {"status": "maintenance"}


def test_update_configuration(client, db, farmer, device):
    headers = auth_headers(farmer)
    response = client.put(
        f"{API}/devices/GP-TEST-001/configuration",
        json={"ph_min": 5.5, "ph_max": 6.5, "alert_enabled": False},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["ph_min"] == 5.5
    assert data["ph_max"] == 6.5
    assert data["alert_enabled"] is False
    assert data["ec_value_min"] == 1.0

    fetched = client.get(f"{API}/devices/GP-TEST-001/configuration", headers=headers).json()["data"]
    assert fetched["ph_max"] == 6.5

    log = db.query(SystemLog).filter(SystemLog.event == "CONFIG_UPDATE").one()
    assert log.details == {"updated_fields": ["alert_enabled", "ph_max", "ph_min"]}


def test_configuration_rejects_inverted_bounds(client, db, farmer, device):
    headers = auth_headers(farmer)
    in_request = client.put(
        f"{API}/devices/GP-TEST-001/configuration",
        json={"ph_min": 7.0, "ph_max": 6.0},
        headers=headers,
    )
    assert in_request.status_code == 400

    against_stored = client.put(
        f"{API}/devices/GP-TEST-001/configuration",
        json={"water_temp_min": 30},
        headers=headers,
    )
    assert against_stored.status_code == 400

    db.expire_all()
    assert db.query(DeviceConfiguration).one().water_temp_min == 20.0


def test_configuration_created_when_missing(client, db, farmer):
    make_device(db, farmer, device_id="GP-BARE", with_config=False)

    response = client.put(
        f"{API}/devices/GP-BARE/configuration",
        json={"air_temp_max": 30},
        headers=auth_headers(farmer),
    )
    assert response.status_code == 200
    assert response.json()["data"]["mqtt_topic"] == "devices/GP-BARE/sensor"
    assert response.json()["data"]["air_temp_max"] == 30


def test_delete_device_cascades(client, db, farmer, device):
    client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=8.4))
    assert db.query(Alert).count() == 1

    response = client.delete(f"{API}/devices/GP-TEST-001", headers=auth_headers(farmer))

    assert response.status_code == 200
    db.expire_all()
    assert db.query(Device).count() == 0
    assert db.query(DeviceConfiguration).count() == 0
    assert db.query(SystemLog).count() == 0
    assert db.query(SensorReading).count() == 0
    assert db.query(Alert).count() == 0

    assert client.get(f"{API}/devices/GP-TEST-001", headers=auth_headers(farmer)).status_code == 404
    assert client.post(f"{API}/sensor-data/", json=reading_payload()).status_code == 404
