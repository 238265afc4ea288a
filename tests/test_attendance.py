from datetime import date, datetime

from guardops.models.models import Attendance, Schedule
from guardops.services.geofence import haversine_distance, within_site
from guardops.services.time_rules import is_on_time, window_start_utc


def _setup(factory, morning):
    guard_user = factory.user("guard")
    guard = factory.guard(user=guard_user)
    loc = factory.location(latitude=-1.2921, longitude=36.8219)
    schedule = factory.schedule(guard, loc, morning, date(2024, 3, 1))
    return guard_user, guard, schedule


def test_window_start_is_converted_from_local_time():
    # Nairobi is UTC+3 all year
    assert window_start_utc(date(2024, 3, 1), datetime(2024, 3, 1, 6, 0).time()) == datetime(2024, 3, 1, 3, 0)


def test_tolerance_boundary():
    expected = datetime(2024, 3, 1, 3, 0)
    assert is_on_time(datetime(2024, 3, 1, 3, 15), expected, 15)
    assert not is_on_time(datetime(2024, 3, 1, 3, 16), expected, 15)
    assert is_on_time(datetime(2024, 3, 1, 2, 30), expected, 15)


def test_haversine_and_radius():
    assert haversine_distance(0, 0, 0, 0) == 0
    assert 110_000 < haversine_distance(0, 0, 1, 0) < 112_000
    assert within_site(-1.2921, 36.8219, -1.2921, 36.8219, 150) is True
    assert within_site(-1.3000, 36.8219, -1.2921, 36.8219, 150) is False
    assert within_site(None, None, -1.2921, 36.8219) is None


def test_guard_checks_in_on_time(client, db, factory, morning):
    guard_user, guard, schedule = _setup(factory, morning)
    r = client.post(
        "/attendance/check-in",
        json={
            "schedule_id": str(schedule.id),
            "check_in_time": "2024-03-01T03:10:00Z",
            "latitude": -1.2922,
            "longitude": 36.8220,
        },
        headers=factory.headers(guard_user),
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "on-time"
    assert body["within_geofence"] is True
    assert body["guard_id"] == str(guard.id)


def test_late_check_in(client, factory, morning):
    guard_user, _, schedule = _setup(factory, morning)
    r = client.post(
        "/attendance/check-in",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T09:20:00+03:00"},
        headers=factory.headers(guard_user),
    )
    assert r.status_code == 201
    assert r.json()["status"] == "late"
    assert r.json()["within_geofence"] is None


def test_double_check_in_conflicts(client, factory, morning):
    guard_user, _, schedule = _setup(factory, morning)
    payload = {"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T03:00:00Z"}
    assert client.post("/attendance/check-in", json=payload, headers=factory.headers(guard_user)).status_code == 201
    assert client.post("/attendance/check-in", json=payload, headers=factory.headers(guard_user)).status_code == 409


def test_guard_cannot_check_in_for_someone_else(client, factory, morning):
    _, _, schedule = _setup(factory, morning)
    intruder = factory.user("guard")
    factory.guard(user=intruder)
    r = client.post(
        "/attendance/check-in",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T03:00:00Z"},
        headers=factory.headers(intruder),
    )
    assert r.status_code == 403


def test_team_leader_can_check_in_a_guard(client, factory, morning):
    _, _, schedule = _setup(factory, morning)
    leader = factory.user("team_leader")
    r = client.post(
        "/attendance/check-in",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T03:00:00Z"},
        headers=factory.headers(leader),
    )
    assert r.status_code == 201


def test_check_out_completes_schedule(client, db, factory, morning):
    guard_user, _, schedule = _setup(factory, morning)
    headers = factory.headers(guard_user)
    att = client.post(
        "/attendance/check-in",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T03:00:00Z"},
        headers=headers,
    ).json()

    early = client.post(f"/attendance/{att['id']}/check-out", json={"check_out_time": "2024-03-01T02:00:00Z"}, headers=headers)
    assert early.status_code == 400

    r = client.post(f"/attendance/{att['id']}/check-out", json={"check_out_time": "2024-03-01T11:00:00Z"}, headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["check_out_time"].startswith("2024-03-01T11:00:00")

    db.expire_all()
    assert db.get(Schedule, schedule.id).status == "completed"

    again = client.post(f"/attendance/{att['id']}/check-out", json={}, headers=headers)
    assert again.status_code == 409


def test_mark_absent_misses_schedule(client, db, factory, admin_headers, morning):
    _, _, schedule = _setup(factory, morning)
    r = client.post("/attendance/absent", json={"schedule_id": str(schedule.id), "comments": "No show"}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["status"] == "absent"

    db.expire_all()
    assert db.get(Schedule, schedule.id).status == "missed"


def test_guard_cannot_mark_absent(client, factory, morning):
    guard_user, _, schedule = _setup(factory, morning)
    r = client.post("/attendance/absent", json={"schedule_id": str(schedule.id)}, headers=factory.headers(guard_user))
    assert r.status_code == 403


def test_manual_attendance_guard_must_match_schedule(client, db, factory, admin_headers, morning):
    _, _, schedule = _setup(factory, morning)
    other = factory.guard()
    r = client.post(
        "/attendance",
        json={"schedule_id": str(schedule.id), "guard_id": str(other.id), "status": "on-time"},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert db.query(Attendance).count() == 0


def test_manual_attendance_rejects_inverted_times(client, factory, admin_headers, morning):
    _, _, schedule = _setup(factory, morning)
    r = client.post(
        "/attendance",
        json={
            "schedule_id": str(schedule.id),
            "check_in_time": "2024-03-01T10:00:00Z",
            "check_out_time": "2024-03-01T09:00:00Z",
        },
        headers=admin_headers,
    )
    assert r.status_code == 400


def test_manual_attendance_derives_status(client, factory, admin_headers, morning):
    _, _, schedule = _setup(factory, morning)
    r = client.post(
        "/attendance",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T04:00:00Z"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert r.json()["status"] == "late"


def test_manual_attendance_on_cancelled_schedule_is_rejected(client, db, factory, admin_headers, morning):
    guard = factory.guard()
    loc = factory.location()
    cancelled = factory.schedule(guard, loc, morning, date(2024, 3, 1), status="cancelled")
    factory.schedule(guard, loc, morning, date(2024, 3, 1))

    r = client.post(
        "/attendance",
        json={
            "schedule_id": str(cancelled.id),
            "check_in_time": "2024-03-01T03:00:00Z",
            "check_out_time": "2024-03-01T11:00:00Z",
        },
        headers=admin_headers,
    )
    assert r.status_code == 400
    statuses = sorted(s["status"] for s in client.get("/schedules", params={"date": "2024-03-01"}, headers=admin_headers).json())
    assert statuses == ["cancelled", "scheduled"]


def test_check_out_keeps_cancelled_schedule_cancelled(client, db, factory, admin_headers, morning):
    guard_user, guard, schedule = _setup(factory, morning)
    headers = factory.headers(guard_user)
    att = client.post(
        "/attendance/check-in",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T03:00:00Z"},
        headers=headers,
    ).json()
    client.patch(f"/schedules/{schedule.id}", json={"status": "cancelled"}, headers=admin_headers)
    replacement = factory.schedule(guard, factory.location(), morning, date(2024, 3, 1))

    r = client.post(f"/attendance/{att['id']}/check-out", json={"check_out_time": "2024-03-01T11:00:00Z"}, headers=headers)
    assert r.status_code == 200

    db.expire_all()
    assert db.get(Schedule, schedule.id).status == "cancelled"
    assert db.get(Schedule, replacement.id).status == "scheduled"


def test_patching_attendance_absent_misses_schedule(client, db, factory, admin_headers, morning):
    guard_user, _, schedule = _setup(factory, morning)
    att = client.post(
        "/attendance/check-in",
        json={"schedule_id": str(schedule.id), "check_in_time": "2024-03-01T03:00:00Z"},
        headers=factory.headers(guard_user),
    ).json()

    r = client.patch(f"/attendance/{att['id']}", json={"status": "absent"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "absent"

    db.expire_all()
    assert db.get(Schedule, schedule.id).status == "missed"
