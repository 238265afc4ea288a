from datetime import date, datetime, time, timedelta

from guardops.models.models import Attendance, Incident
from guardops.services import dashboard


def _attendance(db, guard, status):
    db.add(Attendance(guard_id=guard.id, status=status))
    db.commit()


def test_attendance_rate_is_zero_without_rows(client, admin_headers):
    r = client.get("/dashboard/stats", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["attendance_rate"] == 0


def test_stats_counts(client, db, factory, admin_headers):
    guard = factory.guard()
    factory.client(status="active")
    factory.client(name="Dormant", status="inactive")
    _attendance(db, guard, "on-time")
    _attendance(db, guard, "on-time")
    _attendance(db, guard, "on-time")
    _attendance(db, guard, "late")

    body = client.get("/dashboard/stats", headers=admin_headers).json()
    assert body["total_guards"] == 1
    assert body["active_clients"] == 1
    assert body["pending_reports"] == 0
    assert body["attendance_rate"] == 75.0


def test_stats_days_window(db, factory):
    guard = factory.guard()
    old = Attendance(guard_id=guard.id, status="late", created_at=datetime.utcnow() - timedelta(days=30))
    db.add(old)
    db.commit()
    _attendance(db, guard, "on-time")

    assert dashboard.get_stats(db)["attendance_rate"] == 50.0
    assert dashboard.get_stats(db, days=7)["attendance_rate"] == 100.0


def test_pending_reports_counts_open_incidents(db, factory, admin):
    loc = factory.location()
    cat = factory.category()
    for status in ("open", "open", "investigating", "closed"):
        db.add(Incident(
            reported_by=admin.id, location_id=loc.id, category_id=cat.id,
            title="Gate", description="Gate left open overnight", date=datetime.utcnow(), status=status,
        ))
    db.commit()
    assert dashboard.get_stats(db)["pending_reports"] == 2


def test_time_ago():
    now = datetime(2024, 3, 1, 12, 0)
    assert dashboard.time_ago(now - timedelta(seconds=10), now) == "just now"
    assert dashboard.time_ago(now - timedelta(minutes=1), now) == "1 minute ago"
    assert dashboard.time_ago(now - timedelta(hours=5), now) == "5 hours ago"
    assert dashboard.time_ago(now - timedelta(days=2), now) == "2 days ago"


def test_upcoming_shifts_window_and_limit(db, factory, morning, night):
    loc = factory.location(name="Depot")
    g1, g2, g3 = factory.guard(), factory.guard(), factory.guard()
    # 2024-03-01 00:00 UTC is 03:00 in Nairobi
    now = datetime(2024, 3, 1, 0, 0)

    factory.schedule(g1, loc, night, date(2024, 2, 29))          # started before now
    factory.schedule(g1, loc, morning, date(2024, 3, 1))         # 06:00 today
    factory.schedule(g2, loc, morning, date(2024, 3, 1))         # same slot, grouped
    factory.schedule(g1, loc, night, date(2024, 3, 2))           # 22:00 tomorrow
    factory.schedule(g3, loc, morning, date(2024, 3, 3), status="cancelled")
    factory.schedule(g3, loc, morning, date(2024, 3, 4))
    factory.schedule(g3, loc, morning, date(2024, 3, 12))        # beyond 7 days

    shifts = dashboard.upcoming_shifts(db, now=now, limit=3)
    assert [(s["date"], s["shift_name"]) for s in shifts] == [
        (date(2024, 3, 1), "Morning"),
        (date(2024, 3, 2), "Night"),
        (date(2024, 3, 4), "Morning"),
    ]
    assert len(shifts[0]["guards"]) == 2
    assert shifts[0]["time"] == "06:00 - 14:00"


def test_staff_performance_page(client, db, factory, admin_headers, morning):
    guard_user = factory.user("guard")
    guard = factory.guard(user=guard_user)
    loc = factory.location(name="HQ")
    factory.schedule(guard, loc, morning, date(2024, 3, 1))
    _attendance(db, guard, "on-time")
    _attendance(db, guard, "late")
    cat = factory.category()
    db.add(Incident(
        reported_by=guard_user.id, location_id=loc.id, category_id=cat.id,
        title="Fence", description="Fence cut near the loading bay", date=datetime.utcnow(),
    ))
    db.commit()
    for _ in range(5):
        factory.guard()

    body = client.get("/dashboard/performance", headers=admin_headers).json()
    assert body["total"] == 6
    assert len(body["items"]) == 5
    entry = next(i for i in body["items"] if i["id"] == str(guard.id))
    assert entry["attendance"] == 50.0
    assert entry["incidents"] == 1
    assert entry["location"] == "HQ"

    second = client.get("/dashboard/performance", params={"page": 2}, headers=admin_headers).json()
    assert len(second["items"]) == 1


def test_guard_map_statuses(db, factory, admin):
    shift = factory.shift("All Day", time(0, 0), time(23, 59))
    calm = factory.location(name="A Calm")
    busy = factory.location(name="B Busy")
    hidden = factory.location(name="C Hidden", latitude=None, longitude=None)
    now = datetime(2024, 3, 1, 9, 0)
    today = date(2024, 3, 1)

    g_calm, g_late, g_busy, g_hidden = (factory.guard() for _ in range(4))
    factory.schedule(g_calm, calm, shift, today)
    late = factory.schedule(g_late, calm, shift, today)
    factory.schedule(g_busy, busy, shift, today)
    factory.schedule(g_hidden, hidden, shift, today)
    db.add(Attendance(guard_id=g_late.id, schedule_id=late.id, status="late"))
    db.add(Incident(
        reported_by=admin.id, location_id=busy.id, category_id=factory.category().id,
        title="Alarm", description="Alarm triggered at the back door", date=now, status="investigating",
    ))
    db.commit()

    entries = dashboard.guard_locations(db, now=now, limit=10)
    statuses = {e["guard_id"]: e["status"] for e in entries}
    assert statuses == {
        g_calm.id: "on-duty",
        g_late.id: "late-check-in",
        g_busy.id: "incident-reported",
    }
