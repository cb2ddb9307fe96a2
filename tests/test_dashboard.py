from tkd.shared.constants import DISTRICT_ADMIN, STATE_ADMIN


def _stats(client, headers):
    resp = client.get("/api/dashboard/stats", headers=headers)
    assert resp.status_code == 200
    return resp.get_json()["data"]


def test_super_admin_sees_everything(client, make_user, auth_headers, cadet_payload, poomsae_payload):
    client.post("/api/cadets", json=cadet_payload(district="Ernakulam"))
    client.post("/api/cadets", json=cadet_payload(state="Goa", district="North Goa"))
    client.post("/api/poomsae", json=poomsae_payload())
    admin = make_user()

    data = _stats(client, auth_headers(admin))
    overview = data["overview"]
    assert overview["totalCadets"] == 2
    assert overview["totalPoomsae"] == 1
    assert overview["totalApplications"] == 3
    assert overview["recentCadets"] == 2
    assert overview["totalUsers"] == 1
    assert {row["value"]: row["count"] for row in data["cadetsByState"]} == {"Kerala": 1, "Goa": 1}


def test_counts_follow_caller_scope(client, make_user, auth_headers, cadet_payload):
    client.post("/api/cadets", json=cadet_payload(district="Ernakulam"))
    client.post("/api/cadets", json=cadet_payload(district="Thrissur"))
    client.post("/api/cadets", json=cadet_payload(state="Goa", district="North Goa"))
    state_admin = make_user(role=STATE_ADMIN, state="Kerala")
    district_admin = make_user(role=DISTRICT_ADMIN, state="Kerala", district="Thrissur")

    assert _stats(client, auth_headers(state_admin))["overview"]["totalCadets"] == 2
    district_view = _stats(client, auth_headers(district_admin))
    assert district_view["overview"]["totalCadets"] == 1
    assert district_view["overview"]["totalUsers"] == 1


def test_activities_newest_first_and_scoped(client, make_user, auth_headers, cadet_payload):
    first = client.post("/api/cadets", json=cadet_payload(district="Thrissur")).get_json()["data"]
    client.post("/api/cadets", json=cadet_payload(district="Ernakulam"))
    second = client.post("/api/cadets", json=cadet_payload(district="Thrissur")).get_json()["data"]
    admin = make_user(role=DISTRICT_ADMIN, state="Kerala", district="Thrissur")

    resp = client.get("/api/dashboard/activities?limit=5", headers=auth_headers(admin))
    items = resp.get_json()["data"]
    assert [item["entryId"] for item in items] == [second["entryId"], first["entryId"]]
    assert items[0]["type"] == "cadet"
    assert items[0]["downloadUrl"] == second["downloadUrl"]


def test_dashboard_requires_token(client):
    assert client.get("/api/dashboard/stats").status_code == 401
