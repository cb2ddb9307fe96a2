import os

from tkd.errors import IdentifierExhausted
from tkd.routes import entries as entries_routes
from tkd.shared.constants import DISTRICT_ADMIN, STATE_ADMIN


def _create(client, path, payload, headers=None):
    resp = client.post(path, json=payload, headers=headers or {})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def test_public_cadet_registration_and_download(client, cadet_payload):
    data = _create(client, "/api/cadets", cadet_payload())
    assert data["entryId"] == "CAD-000001"
    assert data["downloadUrl"] == f"/uploads/cadet/{data['fileName']}"
    assert data["entryId"] in data["fileName"]

    resp = client.get(data["downloadUrl"])
    assert resp.status_code == 200
    assert resp.mimetype == "image/png"


def test_public_poomsae_registration(client, poomsae_payload):
    data = _create(client, "/api/poomsae", poomsae_payload())
    assert data["entryId"] == "PMS-000001"


def test_validation_error_shape(client, cadet_payload):
    resp = client.post("/api/cadets", json=cadet_payload(age="twelve"))
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["errors"][0]["field"] == "age"


def test_non_object_body_is_rejected(client):
    resp = client.post("/api/cadets", data="nope", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_listing_requires_token(client):
    resp = client.get("/api/cadets")
    assert resp.status_code == 401
    assert resp.get_json() == {"success": False, "message": "Access denied. No token provided."}


def test_bad_token_is_rejected(client):
    resp = client.get("/api/cadets", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_certificate_creation_requires_token(client, make_user, auth_headers):
    payload = {"name": "Asha Menon", "date": "2024-03-09", "grade": "1st Dan"}
    assert client.post("/api/certificates", json=payload).status_code == 401
    admin = make_user()
    data = _create(client, "/api/certificates", payload, auth_headers(admin))
    assert data["entryId"] == "000-000-001"


def test_district_admin_only_sees_own_district(client, make_user, auth_headers, cadet_payload):
    mine = _create(client, "/api/cadets", cadet_payload(district="Ernakulam"))
    other = _create(client, "/api/cadets", cadet_payload(district="Thrissur"))
    admin = make_user(role=DISTRICT_ADMIN, state="Kerala", district="Ernakulam")
    headers = auth_headers(admin)

    listing = client.get("/api/cadets", headers=headers).get_json()["data"]
    assert [item["entryId"] for item in listing["items"]] == [mine["entryId"]]
    assert listing["pagination"]["total"] == 1

    assert client.get(f"/api/cadets/{mine['entryId']}", headers=headers).status_code == 200
    hidden = client.get(f"/api/cadets/{other['entryId']}", headers=headers)
    assert hidden.status_code == 404
    assert client.delete(f"/api/cadets/{other['entryId']}", headers=headers).status_code == 404


def test_state_admin_scope_uses_state_org_for_poomsae(
    client, make_user, auth_headers, poomsae_payload
):
    _create(client, "/api/poomsae", poomsae_payload(stateOrg="Kerala"))
    _create(client, "/api/poomsae", poomsae_payload(stateOrg="Goa"))
    admin = make_user(role=STATE_ADMIN, state="Kerala")
    listing = client.get("/api/poomsae", headers=auth_headers(admin)).get_json()["data"]
    assert [item["stateOrg"] for item in listing["items"]] == ["Kerala"]


def test_filters_and_pagination(client, make_user, auth_headers, cadet_payload):
    for gender in ("male", "female", "female"):
        _create(client, "/api/cadets", cadet_payload(gender=gender))
    headers = auth_headers(make_user())
    resp = client.get("/api/cadets?gender=female&limit=1&page=2", headers=headers)
    data = resp.get_json()["data"]
    assert data["pagination"] == {"total": 2, "page": 2, "limit": 1, "pages": 2}
    assert len(data["items"]) == 1
    assert client.get("/api/cadets?page=abc", headers=headers).status_code == 400


def test_delete_removes_record_and_file(app, client, make_user, auth_headers, cadet_payload):
    data = _create(client, "/api/cadets", cadet_payload())
    path = os.path.join(app.config["UPLOAD_ROOT"], "cadet", data["fileName"])
    assert os.path.exists(path)
    headers = auth_headers(make_user())

    resp = client.delete(f"/api/cadets/{data['entryId']}", headers=headers)
    assert resp.status_code == 200
    assert not os.path.exists(path)
    assert client.get(f"/api/cadets/{data['entryId']}", headers=headers).status_code == 404


def test_stats_and_status_update(client, make_user, auth_headers, cadet_payload):
    first = _create(client, "/api/cadets", cadet_payload(gender="female"))
    _create(client, "/api/cadets", cadet_payload(gender="male"))
    headers = auth_headers(make_user())

    stats = client.get("/api/cadets/stats", headers=headers).get_json()["data"]
    assert stats["total"] == 2
    assert stats["recent"] == 2
    assert {row["value"]: row["count"] for row in stats["byGender"]} == {"female": 1, "male": 1}

    resp = client.patch(
        f"/api/cadets/{first['entryId']}/status", json={"status": "approved"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["status"] == "approved"
    bad = client.patch(
        f"/api/cadets/{first['entryId']}/status", json={"status": "maybe"}, headers=headers
    )
    assert bad.status_code == 400


def test_exhausted_identifiers_map_to_503(client, cadet_payload, monkeypatch):
    def exhausted(*args, **kwargs):
        raise IdentifierExhausted()

    monkeypatch.setattr(entries_routes, "create_entry", exhausted)
    resp = client.post("/api/cadets", json=cadet_payload())
    assert resp.status_code == 503
    assert "retry" in resp.get_json()["message"]


def test_unexpected_errors_are_generic(client, cadet_payload, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(entries_routes, "create_entry", boom)
    resp = client.post("/api/cadets", json=cadet_payload())
    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "message": "Something went wrong"}


def test_unknown_kind_and_missing_upload_are_404(client):
    assert client.get("/api/widgets").status_code == 404
    assert client.get("/uploads/cadet/missing.png").status_code == 404
