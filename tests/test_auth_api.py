import logging

from tkd.app import db
from tkd.models import User
from tkd.shared.constants import DISTRICT_ADMIN, STATE_ADMIN, SUPER_ADMIN
from tkd.shared.passwords import hash_password, password_problems, verify_password

from conftest import TEST_PASSWORD


def _login(client, email, password=TEST_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_login_returns_token_usable_for_profile(client, make_user):
    user = make_user(email="Admin@Example.com")
    resp = _login(client, "admin@example.com")
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["user"]["email"] == "admin@example.com"

    profile = client.get(
        "/api/auth/profile", headers={"Authorization": f"Bearer {data['token']}"}
    )
    assert profile.status_code == 200
    assert profile.get_json()["data"]["id"] == user.id
    assert db.session.get(User, user.id).last_login is not None


def test_login_failures(client, make_user, caplog):
    caplog.set_level(logging.INFO)
    make_user(email="a@example.com")
    make_user(email="off@example.com", active=False)
    assert _login(client, "a@example.com", "wrong").status_code == 401
    assert _login(client, "nobody@example.com").status_code == 401
    assert _login(client, "off@example.com").status_code == 403
    assert client.post("/api/auth/login", json={}).status_code == 400
    assert "[AUTH-FAIL]" in caplog.text


def test_deactivated_user_token_stops_working(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    user.is_active = False
    db.session.commit()
    assert client.get("/api/auth/profile", headers=headers).status_code == 401


def test_super_admin_creates_users(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    payload = {
        "email": "state@example.com",
        "password": "StrongPass1",
        "name": "State Lead",
        "role": "stateAdmin",
        "state": "Kerala",
    }
    resp = client.post("/api/auth/users", json=payload, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()["data"]["role"] == STATE_ADMIN

    dup = client.post("/api/auth/users", json=payload, headers=headers)
    assert dup.status_code == 409

    weak = client.post(
        "/api/auth/users", json={**payload, "email": "w@example.com", "password": "short"}, headers=headers
    )
    assert weak.status_code == 400

    missing_state = client.post(
        "/api/auth/users",
        json={**payload, "email": "s2@example.com", "state": ""},
        headers=headers,
    )
    assert missing_state.status_code == 400

    users = client.get("/api/auth/users", headers=headers).get_json()["data"]
    assert {u["email"] for u in users} == {"user1@example.com", "state@example.com"}


def test_user_update_toggle_and_delete(client, make_user, auth_headers):
    admin = make_user()
    target = make_user(role=DISTRICT_ADMIN, state="Kerala", district="Ernakulam")
    headers = auth_headers(admin)

    resp = client.put(
        f"/api/auth/users/{target.id}", json={"name": "Renamed", "district": "Thrissur"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["district"] == "Thrissur"

    toggled = client.patch(f"/api/auth/users/{target.id}/toggle-status", headers=headers)
    assert toggled.get_json()["data"]["isActive"] is False

    assert client.delete(f"/api/auth/users/{admin.id}", headers=headers).status_code == 400
    assert client.delete(f"/api/auth/users/{target.id}", headers=headers).status_code == 200
    assert client.delete(f"/api/auth/users/{target.id}", headers=headers).status_code == 404


def test_only_super_admin_manages_all_users(client, make_user, auth_headers):
    state_admin = make_user(role=STATE_ADMIN, state="Kerala")
    district_admin = make_user(role=DISTRICT_ADMIN, state="Kerala", district="Ernakulam")
    assert client.get("/api/auth/users", headers=auth_headers(state_admin)).status_code == 403
    assert client.get("/api/auth/users", headers=auth_headers(district_admin)).status_code == 403
    assert (
        client.get("/api/auth/district-admins", headers=auth_headers(district_admin)).status_code
        == 403
    )


def test_state_admin_manages_district_admins_in_own_state(client, make_user, auth_headers):
    state_admin = make_user(role=STATE_ADMIN, state="Kerala")
    outsider = make_user(role=DISTRICT_ADMIN, state="Goa", district="North Goa")
    headers = auth_headers(state_admin)

    resp = client.post(
        "/api/auth/district-admins",
        json={
            "email": "dist@example.com",
            "password": "StrongPass1",
            "name": "District Lead",
            "district": "Ernakulam",
            "state": "Goa",
            "role": SUPER_ADMIN,
        },
        headers=headers,
    )
    assert resp.status_code == 201
    created = resp.get_json()["data"]
    assert created["role"] == DISTRICT_ADMIN
    assert created["state"] == "Kerala"

    listing = client.get("/api/auth/district-admins", headers=headers).get_json()["data"]
    assert [u["email"] for u in listing] == ["dist@example.com"]

    assert (
        client.patch(f"/api/auth/district-admins/{outsider.id}/toggle-status", headers=headers).status_code
        == 404
    )
    assert (
        client.delete(f"/api/auth/district-admins/{created['id']}", headers=headers).status_code
        == 200
    )


def test_password_helpers():
    hashed = hash_password("StrongPass1")
    assert verify_password("StrongPass1", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("", hashed)
    assert password_problems("StrongPass1") == []
    assert len(password_problems("weak")) == 3
