"""
Dashboard aggregations.
Read-only views derived from guards, schedules, attendance and incidents.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..models.models import Attendance, Client, Guard, Incident, Location, Schedule
from .incidents import ACTIVE_STATUSES
from .schedule_conflict import shift_window
from .time_rules import utc_to_local


def attendance_rate(on_time: int, total: int) -> float:
    """Percentage of on-time rows; 0 when there are no rows."""
    if not total:
        return 0.0
    return 100.0 * on_time / total


def get_stats(db: Session, days: Optional[int] = None, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    attendance = db.query(Attendance)
    if days:
        attendance = attendance.filter(Attendance.created_at >= now - timedelta(days=days))
    total = attendance.count()
    on_time = attendance.filter(Attendance.status == "on-time").count()

    return {
        "total_guards": db.query(func.count(Guard.id)).scalar() or 0,
        "active_clients": db.query(func.count(Client.id)).filter(Client.status == "active").scalar() or 0,
        "pending_reports": db.query(func.count(Incident.id)).filter(Incident.status == "open").scalar() or 0,
        "attendance_rate": attendance_rate(on_time, total),
    }


def time_ago(then: datetime, now: Optional[datetime] = None) -> str:
    now = now or datetime.utcnow()
    seconds = int((now - then.replace(tzinfo=None)).total_seconds())
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = hours // 24
    return f"{days} day{'s' if days != 1 else ''} ago"


def recent_activities(db: Session, limit: int = 5, now: Optional[datetime] = None) -> List[dict]:
    incidents = (
        db.query(Incident)
        .options(joinedload(Incident.reporter), joinedload(Incident.location))
        .order_by(Incident.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": i.id,
            "type": "incident",
            "title": i.title,
            "description": i.description,
            "status": i.status,
            "priority": i.priority,
            "timestamp": i.created_at,
            "time_ago": time_ago(i.created_at, now),
            "reporter_name": (i.reporter.full_name or i.reporter.username) if i.reporter else None,
            "location_name": i.location.name if i.location else None,
        }
        for i in incidents
    ]


def staff_performance(db: Session, page: int = 1, page_size: Optional[int] = None) -> dict:
    page_size = page_size or settings.staff_performance_page_size
    page = max(page, 1)
    total = db.query(func.count(Guard.id)).scalar() or 0
    guards = (
        db.query(Guard)
        .options(joinedload(Guard.user))
        .order_by(Guard.guard_code.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    items = []
    for g in guards:
        rows = db.query(Attendance.status).filter(Attendance.guard_id == g.id).all()
        on_time = sum(1 for (status,) in rows if status == "on-time")
        incidents = db.query(func.count(Incident.id)).filter(Incident.reported_by == g.user_id).scalar() or 0
        latest = (
            db.query(Schedule)
            .options(joinedload(Schedule.location))
            .filter(Schedule.guard_id == g.id)
            .order_by(Schedule.date.desc(), Schedule.created_at.desc())
            .first()
        )
        items.append({
            "id": g.id,
            "guard_code": g.guard_code,
            "name": g.user.full_name if g.user and g.user.full_name else g.guard_code,
            "position": g.position,
            "location": latest.location.name if latest and latest.location else None,
            "attendance": attendance_rate(on_time, len(rows)),
            "incidents": incidents,
            "performance": g.performance or 0,
        })

    return {"page": page, "page_size": page_size, "total": total, "items": items}


def upcoming_shifts(
    db: Session,
    now: Optional[datetime] = None,
    limit: int = 3,
    days: Optional[int] = None,
) -> List[dict]:
    """
    Shift occurrences starting within the next few days, soonest first.

    Guards sharing a location, shift and date are grouped into one entry.
    Schedules whose guard, user, location or shift cannot be joined are left out.
    """
    days = days or settings.upcoming_shift_days
    local_now = utc_to_local(now or datetime.utcnow()).replace(tzinfo=None)
    horizon = local_now + timedelta(days=days)

    schedules = (
        db.query(Schedule)
        .options(
            joinedload(Schedule.guard).joinedload(Guard.user),
            joinedload(Schedule.location),
            joinedload(Schedule.shift),
        )
        .filter(
            Schedule.status != "cancelled",
            Schedule.date >= local_now.date(),
            Schedule.date <= horizon.date(),
        )
        .all()
    )

    groups: Dict[Tuple, dict] = {}
    for s in schedules:
        if s.guard is None or s.guard.user is None or s.location is None or s.shift is None:
            continue
        start, end = shift_window(s.date, s.shift.start_time, s.shift.end_time)
        if not (local_now <= start <= horizon):
            continue
        key = (s.location_id, s.shift_id, s.date)
        entry = groups.get(key)
        if entry is None:
            entry = groups[key] = {
                "location": s.location.name,
                "shift_name": s.shift.name,
                "date": s.date,
                "starts_at": start,
                "time": f"{start:%H:%M} - {end:%H:%M}",
                "guards": [],
            }
        entry["guards"].append({"id": s.guard.id, "name": s.guard.user.full_name or s.guard.guard_code})

    return sorted(groups.values(), key=lambda e: (e["starts_at"], e["location"]))[:limit]


def guard_locations(db: Session, now: Optional[datetime] = None, limit: Optional[int] = None) -> List[dict]:
    """
    Approximate map snapshot of guards working today at sites with coordinates.

    A site with an open or investigating incident shows incident-reported;
    a late check-in shows late-check-in; anything else is on-duty.
    """
    limit = limit or settings.guard_map_limit
    today = utc_to_local(now or datetime.utcnow()).date()

    flagged_locations = {
        loc_id
        for (loc_id,) in db.query(Incident.location_id).filter(Incident.status.in_(ACTIVE_STATUSES)).distinct()
    }

    schedules = (
        db.query(Schedule)
        .join(Location, Schedule.location_id == Location.id)
        .options(
            joinedload(Schedule.guard).joinedload(Guard.user),
            joinedload(Schedule.location),
            joinedload(Schedule.attendance),
        )
        .filter(
            Schedule.date == today,
            Schedule.status != "cancelled",
            Location.latitude.isnot(None),
            Location.longitude.isnot(None),
        )
        .order_by(Location.name.asc())
        .all()
    )

    entries = []
    for s in schedules:
        if s.guard is None:
            continue
        if s.location_id in flagged_locations:
            status = "incident-reported"
        elif s.attendance is not None and s.attendance.status == "late":
            status = "late-check-in"
        else:
            status = "on-duty"
        entries.append({
            "guard_id": s.guard.id,
            "guard_name": (s.guard.user.full_name if s.guard.user else None) or s.guard.guard_code,
            "location_id": s.location.id,
            "location_name": s.location.name,
            "latitude": s.location.latitude,
            "longitude": s.location.longitude,
            "status": status,
        })
        if len(entries) >= limit:
            break
    return entries
