from app.core.security import create_access_token, verify_token
from app.models.farm import Farm, User

from conftest import API, PASSWORD, auth_headers


def register(client, **overrides):
    body = {"user_name": "Malee", "email": "Malee@Example.com", "password": "supersecret"}
    body.update(overrides)
    return client.post(f"{API}/auth/register", json=body)


def test_register_farmer_creates_default_farm(client, db):
    response = register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "malee@example.com"
    assert body["user"]["role"] == "farmer"

    farm = db.query(Farm).one()
    assert farm.farm_name == "Malee's Farm"
    assert farm.user_id == body["user"]["id"]

    payload = verify_token(body["token"])
    assert payload["sub"] == str(body["user"]["id"])
    assert payload["role"] == "farmer"


def test_register_viewer_has_no_farm(client, db):
    response = register(client, role="viewer")
    assert response.status_code == 201
    assert db.query(Farm).count() == 0


def test_register_rejects_admin_and_short_passwords(client):
    assert register(client, role="admin").status_code == 400
    assert register(client, password="short").status_code == 400
    assert register(client, email="not-an-email").status_code == 400


def test_register_duplicate_email(client):
    register(client)
    response = register(client, email="malee@example.com")
    assert response.status_code == 400
    assert response.json()["message"] == "Email already exists"


def test_login_and_me(client, farmer):
    response = client.post(f"{API}/auth/login", json={"email": "FARMER@example.com", "password": PASSWORD})
    assert response.status_code == 200
    token = response.json()["token"]

    me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["email"] == "farmer@example.com"
    assert me.json()["data"]["last_login"] is not None


def test_login_failures(client, db, farmer):
    bad = client.post(f"{API}/auth/login", json={"email": "farmer@example.com", "password": "wrong-password"})
    assert bad.status_code == 401
    assert bad.json()["success"] is False

    farmer.is_active = False
    db.commit()
    disabled = client.post(f"{API}/auth/login", json={"email": "farmer@example.com", "password": PASSWORD})
    assert disabled.status_code == 401
    assert disabled.json()["message"] == "Account is disabled"


def test_invalid_and_inactive_tokens(client, db, farmer):
    assert client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401
    assert client.get(f"{API}/auth/me").status_code == 401

    orphan = create_access_token({"sub": "4242"})
    assert client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {orphan}"}).status_code == 401

    headers = auth_headers(farmer)
    farmer.is_active = False
    db.commit()
    assert client.get(f"{API}/auth/me", headers=headers).status_code == 401


def test_logout(client, farmer):
    response = client.post(f"{API}/auth/logout", headers=auth_headers(farmer))
    assert response.json() == {"success": True, "message": "Logged out successfully"}


def test_user_record_keeps_hash_only(client, db):
    register(client)
    user = db.query(User).one()
    assert user.hashed_password != "supersecret"
