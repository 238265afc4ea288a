from datetime import date


CLIENT = {
    "name": "Globex",
    "address": "42 Industrial Road",
    "contact_person": "Hank Scorpio",
    "contact_phone": "555-0199",
    "contact_email": "hank@globex.com",
    "contract_start": "2024-01-01",
    "contract_end": "2024-12-31",
}


def test_create_client_and_location(client, admin_headers):
    r = client.post("/clients", json=CLIENT, headers=admin_headers)
    assert r.status_code == 201, r.text
    client_id = r.json()["id"]

    r = client.post(
        "/locations",
        json={"client_id": client_id, "name": "Main Gate", "latitude": -1.29, "longitude": 36.82},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text

    detail = client.get(f"/clients/{client_id}", headers=admin_headers).json()
    assert [loc["name"] for loc in detail["locations"]] == ["Main Gate"]

    filtered = client.get("/locations", params={"client_id": client_id}, headers=admin_headers).json()
    assert len(filtered) == 1


def test_contract_end_before_start_is_rejected(client, admin_headers):
    payload = dict(CLIENT, contract_start="2024-06-01", contract_end="2024-05-31")
    assert client.post("/clients", json=payload, headers=admin_headers).status_code == 400


def test_patch_cannot_invert_contract_dates(client, factory, admin_headers):
    c = factory.client()
    r = client.patch(f"/clients/{c.id}", json={"contract_end": "2023-12-31"}, headers=admin_headers)
    assert r.status_code == 400


def test_short_client_fields_are_rejected(client, admin_headers):
    assert client.post("/clients", json=dict(CLIENT, name="G"), headers=admin_headers).status_code == 400
    assert client.post("/clients", json=dict(CLIENT, address="Rd"), headers=admin_headers).status_code == 400


def test_location_for_unknown_client_is_404(client, admin_headers):
    r = client.post(
        "/locations",
        json={"client_id": "00000000-0000-0000-0000-000000000000", "name": "Nowhere"},
        headers=admin_headers,
    )
    assert r.status_code == 404


def test_location_latitude_range(client, factory, admin_headers):
    c = factory.client()
    r = client.post(
        "/locations",
        json={"client_id": str(c.id), "name": "Pole", "latitude": 91, "longitude": 0},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_shift_with_equal_times_is_rejected(client, admin_headers):
    r = client.post("/shifts", json={"name": "Zero", "start_time": "08:00", "end_time": "08:00"}, headers=admin_headers)
    assert r.status_code == 400


def test_overnight_shift_is_flagged(client, admin_headers):
    r = client.post("/shifts", json={"name": "Night", "start_time": "22:00", "end_time": "06:00"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["overnight"] is True


def test_schedule_requires_existing_refs(client, factory, admin_headers, morning):
    loc = factory.location()
    r = client.post(
        "/schedules",
        json={
            "guard_id": "00000000-0000-0000-0000-000000000000",
            "location_id": str(loc.id),
            "shift_id": str(morning.id),
            "date": "2024-03-01",
        },
        headers=admin_headers,
    )
    assert r.status_code == 404


def test_inactive_guard_cannot_be_scheduled(client, factory, admin_headers, morning):
    guard = factory.guard(status="on-leave")
    loc = factory.location()
    r = client.post(
        "/schedules",
        json={"guard_id": str(guard.id), "location_id": str(loc.id), "shift_id": str(morning.id), "date": "2024-03-01"},
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_team_leader_can_schedule_and_result_is_enriched(client, factory, morning):
    leader = factory.user("team_leader")
    guard = factory.guard()
    loc = factory.location(name="Warehouse")
    r = client.post(
        "/schedules",
        json={"guard_id": str(guard.id), "location_id": str(loc.id), "shift_id": str(morning.id), "date": "2024-03-01"},
        headers=factory.headers(leader),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "scheduled"
    assert body["created_by"] == str(leader.id)
    assert body["guard"]["guard_code"] == guard.guard_code
    assert body["location"]["name"] == "Warehouse"
    assert body["shift"]["start_time"] == "06:00:00"


def test_schedule_list_filter_modes(client, factory, admin_headers, morning):
    guard = factory.guard()
    other = factory.guard()
    loc = factory.location()
    factory.schedule(guard, loc, morning, date(2024, 3, 1))
    factory.schedule(guard, loc, morning, date(2024, 3, 3))
    factory.schedule(other, loc, morning, date(2024, 3, 5))

    by_date = client.get("/schedules", params={"date": "2024-03-01"}, headers=admin_headers)
    assert by_date.status_code == 200
    assert len(by_date.json()) == 1

    by_range = client.get("/schedules", params={"start_date": "2024-03-01", "end_date": "2024-03-05"}, headers=admin_headers)
    assert len(by_range.json()) == 3

    by_guard = client.get("/schedules", params={"guard_id": str(guard.id)}, headers=admin_headers)
    assert [s["date"] for s in by_guard.json()] == ["2024-03-01", "2024-03-03"]


def test_schedule_list_rejects_zero_or_mixed_modes(client, admin_headers):
    assert client.get("/schedules", headers=admin_headers).status_code == 400
    assert client.get(
        "/schedules", params={"date": "2024-03-01", "guard_id": "00000000-0000-0000-0000-000000000000"}, headers=admin_headers
    ).status_code == 400
    assert client.get("/schedules", params={"start_date": "2024-03-01"}, headers=admin_headers).status_code == 400
