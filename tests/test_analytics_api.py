from conftest import API, auth_headers, make_device, make_user, reading_payload


def test_dashboard_for_farmer(client, db, farmer, device):
    make_device(db, farmer, device_id="GP-TEST-002", name="Idle")
    client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=8.4))

    response = client.get(f"{API}/analytics/dashboard", headers=auth_headers(farmer))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_devices"] == 2
    assert data["active_devices"] == 2
    assert data["open_alerts"] == 1
    assert [r["device_id"] for r in data["latest_readings"]] == ["GP-TEST-001"]
    assert data["last_updated"]


def test_dashboard_excludes_other_users(client, db, device):
    other = make_user(db, "other@example.com", name="Other", with_farm=True)
    client.post(f"{API}/sensor-data/", json=reading_payload(ph_value=8.4))

    data = client.get(f"{API}/analytics/dashboard", headers=auth_headers(other)).json()["data"]
    assert data["total_devices"] == 0
    assert data["open_alerts"] == 0


def test_admin_stats(client, db, admin, farmer, device):
    make_device(db, farmer, device_id="GP-QUIET", name="Quiet")
    client.post(f"{API}/sensor-data/", json=reading_payload())

    response = client.get(f"{API}/analytics/admin/stats", headers=auth_headers(admin))

    data = response.json()["data"]
    assert data["stats"] == {"total_users": 2, "total_farms": 1, "total_devices": 2, "active_alerts": 0}
    assert data["last_sensor_data"][0]["device_id"] == "GP-TEST-001"
    assert data["last_sensor_data"][0]["farm_name"] == "Farmer's Farm"
    activity = data["device_activity"]
    assert activity[0]["device_id"] == "GP-TEST-001"
    assert activity[-1]["device_id"] == "GP-QUIET"
    assert activity[-1]["last_reading"] is None


def test_admin_stats_forbidden_for_farmers(client, farmer):
    assert client.get(f"{API}/analytics/admin/stats", headers=auth_headers(farmer)).status_code == 403


def test_health_and_root(client):
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["components"]["database"] == "healthy"
    assert health["components"]["mqtt"] == "disabled"

    root = client.get("/")
    assert root.json()["websocket"] == "/ws"
    assert root.headers["X-API-Version"] == "1.0.0"


def test_unknown_route_uses_error_envelope(client):
    response = client.get(f"{API}/nothing-here")
    assert response.status_code == 404
    assert response.json()["success"] is False
