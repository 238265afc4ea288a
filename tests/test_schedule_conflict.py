from datetime import date, datetime, time

from guardops.models.models import Schedule
from guardops.services.schedule_conflict import (
    get_conflicting_schedules,
    has_overlap,
    shift_window,
    windows_overlap,
)


def test_day_shift_window_stays_on_date():
    start, end = shift_window(date(2024, 3, 1), time(6, 0), time(14, 0))
    assert start == datetime(2024, 3, 1, 6, 0)
    assert end == datetime(2024, 3, 1, 14, 0)


def test_overnight_window_wraps_past_midnight():
    start, end = shift_window(date(2024, 3, 1), time(22, 0), time(6, 0))
    assert start == datetime(2024, 3, 1, 22, 0)
    assert end == datetime(2024, 3, 2, 6, 0)


def test_touching_windows_do_not_collide():
    night = shift_window(date(2024, 3, 1), time(22, 0), time(6, 0))
    next_morning = shift_window(date(2024, 3, 2), time(6, 0), time(14, 0))
    assert not windows_overlap(night, next_morning)
    assert not windows_overlap(next_morning, night)


def test_early_start_after_night_collides():
    night = shift_window(date(2024, 3, 1), time(22, 0), time(6, 0))
    early = shift_window(date(2024, 3, 2), time(5, 0), time(13, 0))
    assert windows_overlap(night, early)


def test_contained_window_collides():
    outer = shift_window(date(2024, 3, 1), time(8, 0), time(20, 0))
    inner = shift_window(date(2024, 3, 1), time(10, 0), time(12, 0))
    assert windows_overlap(outer, inner)
    assert windows_overlap(inner, outer)


def test_previous_day_night_is_a_candidate(db, factory, night):
    guard = factory.guard()
    loc = factory.location()
    factory.schedule(guard, loc, night, date(2024, 3, 1))

    assert has_overlap(db, guard.id, date(2024, 3, 2), time(5, 0), time(13, 0))
    assert not has_overlap(db, guard.id, date(2024, 3, 2), time(6, 0), time(14, 0))


def test_cancelled_schedules_are_ignored(db, factory, morning):
    guard = factory.guard()
    loc = factory.location()
    factory.schedule(guard, loc, morning, date(2024, 3, 1), status="cancelled")

    assert get_conflicting_schedules(db, guard.id, date(2024, 3, 1), time(6, 0), time(14, 0)) == []


def test_excluded_schedule_does_not_conflict_with_itself(db, factory, morning):
    guard = factory.guard()
    loc = factory.location()
    s = factory.schedule(guard, loc, morning, date(2024, 3, 1))

    assert has_overlap(db, guard.id, date(2024, 3, 1), time(6, 0), time(14, 0))
    assert not has_overlap(db, guard.id, date(2024, 3, 1), time(6, 0), time(14, 0), exclude_schedule_id=s.id)


def test_other_guards_do_not_conflict(db, factory, morning):
    loc = factory.location()
    factory.schedule(factory.guard(), loc, morning, date(2024, 3, 1))

    assert not has_overlap(db, factory.guard().id, date(2024, 3, 1), time(6, 0), time(14, 0))


def test_api_rejects_overlap_and_persists_nothing(client, db, factory, admin_headers, morning):
    guard = factory.guard()
    loc = factory.location()
    existing = factory.schedule(guard, loc, morning, date(2024, 3, 1))
    overlapping = factory.shift("Mid", time(10, 0), time(18, 0))

    r = client.post(
        "/schedules",
        json={"guard_id": str(guard.id), "location_id": str(loc.id), "shift_id": str(overlapping.id), "date": "2024-03-01"},
        headers=admin_headers,
    )
    assert r.status_code == 409, r.text
    body = r.json()
    assert body["errors"] == [{"schedule_id": str(existing.id)}]
    assert db.query(Schedule).filter(Schedule.guard_id == guard.id).count() == 1


def test_api_accepts_back_to_back_shifts(client, factory, admin_headers, night, morning):
    guard = factory.guard()
    loc = factory.location()
    factory.schedule(guard, loc, night, date(2024, 3, 1))

    r = client.post(
        "/schedules",
        json={"guard_id": str(guard.id), "location_id": str(loc.id), "shift_id": str(morning.id), "date": "2024-03-02"},
        headers=admin_headers,
    )
    assert r.status_code == 201, r.text


def test_update_moving_into_overlap_is_rejected(client, db, factory, admin_headers, morning, night):
    guard = factory.guard()
    loc = factory.location()
    factory.schedule(guard, loc, morning, date(2024, 3, 2))
    s = factory.schedule(guard, loc, night, date(2024, 3, 5))
    early = factory.shift("Early", time(4, 0), time(12, 0))

    r = client.patch(f"/schedules/{s.id}", json={"date": "2024-03-02", "shift_id": str(early.id)}, headers=admin_headers)
    assert r.status_code == 409

    db.expire_all()
    assert db.get(Schedule, s.id).date == date(2024, 3, 5)


def test_reactivating_cancelled_schedule_rechecks_overlap(client, factory, admin_headers, morning):
    guard = factory.guard()
    loc = factory.location()
    factory.schedule(guard, loc, morning, date(2024, 3, 1))
    cancelled = factory.schedule(guard, loc, morning, date(2024, 3, 1), status="cancelled")

    r = client.patch(f"/schedules/{cancelled.id}", json={"status": "scheduled"}, headers=admin_headers)
    assert r.status_code == 409


def test_retiming_a_shift_rechecks_its_schedules(client, factory, admin_headers, morning):
    guard = factory.guard()
    loc = factory.location()
    afternoon = factory.shift("Afternoon", time(14, 0), time(22, 0))
    factory.schedule(guard, loc, morning, date(2024, 3, 1))
    factory.schedule(guard, loc, afternoon, date(2024, 3, 1))

    r = client.patch(f"/shifts/{morning.id}", json={"end_time": "15:00"}, headers=admin_headers)
    assert r.status_code == 409

    r = client.patch(f"/shifts/{morning.id}", json={"start_time": "05:00"}, headers=admin_headers)
    assert r.status_code == 200


def test_null_schedule_fields_are_rejected(client, factory, admin_headers, morning):
    guard = factory.guard()
    loc = factory.location()
    s = factory.schedule(guard, loc, morning, date(2024, 3, 1))

    assert client.patch(f"/schedules/{s.id}", json={"date": None}, headers=admin_headers).status_code == 400
    assert client.patch(f"/schedules/{s.id}", json={"status": None}, headers=admin_headers).status_code == 400
    assert client.patch(f"/shifts/{morning.id}", json={"start_time": None}, headers=admin_headers).status_code == 400
