"""
Attendance service.
Check-in status is derived from the shift window; check-out and absence
move the linked schedule to its terminal state.
"""
import uuid
from datetime import datetime
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session, joinedload

from ..errors import AuthorizationError, ConflictError, DomainError, NotFoundError, ValidationError
from ..models.models import Attendance, Guard, Schedule
from ..schemas.scheduling import (
    AbsentRequest,
    AttendanceCreate,
    AttendanceUpdate,
    CheckInRequest,
    CheckOutRequest,
)
from . import audit
from .geofence import within_site
from .permissions import Identity, is_guard
from .persistence import apply_patch, commit, get_or_404, snapshot
from .time_rules import is_on_time, to_utc_naive, window_start_utc


logger = structlog.get_logger(__name__)

_SNAPSHOT_FIELDS = ("guard_id", "schedule_id", "check_in_time", "check_out_time", "status", "within_geofence")


def _ensure_own(actor: Identity, guard: Guard) -> None:
    # Guards may only record attendance for themselves
    if is_guard(actor) and guard.user_id != actor.user_id:
        raise AuthorizationError("Guards may only record their own attendance")


def _load_schedule(db: Session, schedule_id: uuid.UUID) -> Schedule:
    schedule = (
        db.query(Schedule)
        .options(
            joinedload(Schedule.guard),
            joinedload(Schedule.shift),
            joinedload(Schedule.location),
            joinedload(Schedule.attendance),
        )
        .filter(Schedule.id == schedule_id)
        .first()
    )
    if schedule is None:
        raise NotFoundError("Schedule not found")
    return schedule


def _close_schedule(schedule: Schedule, status: Optional[str], check_out: Optional[datetime]) -> None:
    # Only a live schedule moves to a terminal state; cancelled ones stay out of the overlap rule
    if schedule.status != "scheduled":
        return
    if status == "absent":
        schedule.status = "missed"
    elif check_out:
        schedule.status = "completed"


def derive_status(schedule: Schedule, check_in_time: datetime) -> str:
    expected = window_start_utc(schedule.date, schedule.shift.start_time)
    return "on-time" if is_on_time(check_in_time, expected) else "late"


def create_attendance(db: Session, actor: Identity, payload: AttendanceCreate) -> Attendance:
    try:
        schedule = None
        if payload.schedule_id:
            schedule = _load_schedule(db, payload.schedule_id)
            if payload.guard_id and payload.guard_id != schedule.guard_id:
                raise ValidationError("guard_id does not match the schedule's guard")
            if schedule.status == "cancelled":
                raise ValidationError("Cannot record attendance for a cancelled schedule")
            if schedule.attendance is not None:
                raise ConflictError("Attendance already recorded for this schedule")
            guard = schedule.guard
        else:
            guard = get_or_404(db, Guard, payload.guard_id, "Guard")
        _ensure_own(actor, guard)

        check_in = to_utc_naive(payload.check_in_time) if payload.check_in_time else None
        check_out = to_utc_naive(payload.check_out_time) if payload.check_out_time else None
        if check_in and check_out and check_out < check_in:
            raise ValidationError("check_out_time must not be before check_in_time")

        status = payload.status
        if status is None and check_in and schedule is not None:
            status = derive_status(schedule, check_in)

        within = None
        if schedule is not None:
            within = within_site(
                payload.location_latitude, payload.location_longitude,
                schedule.location.latitude, schedule.location.longitude,
            )

        att = Attendance(
            guard_id=guard.id,
            schedule_id=schedule.id if schedule else None,
            check_in_time=check_in,
            check_out_time=check_out,
            status=status,
            comments=payload.comments,
            location_latitude=payload.location_latitude,
            location_longitude=payload.location_longitude,
            within_geofence=within,
        )
        db.add(att)
        if schedule is not None:
            _close_schedule(schedule, status, check_out)
        db.flush()
        audit.record(db, "attendance", att.id, "CREATE", actor, {"after": snapshot(att, _SNAPSHOT_FIELDS)})
    except DomainError:
        db.rollback()
        raise

    commit(db, "Attendance already recorded for this schedule")
    return att


def check_in(db: Session, actor: Identity, req: CheckInRequest, now: Optional[datetime] = None) -> Attendance:
    try:
        schedule = _load_schedule(db, req.schedule_id)
        _ensure_own(actor, schedule.guard)
        if schedule.status != "scheduled":
            raise ValidationError(f"Cannot check in to a {schedule.status} schedule")
        if schedule.attendance is not None:
            raise ConflictError("Already checked in for this schedule")

        at = to_utc_naive(req.check_in_time or now or datetime.utcnow())
        status = derive_status(schedule, at)
        within = within_site(
            req.latitude, req.longitude,
            schedule.location.latitude, schedule.location.longitude,
        )

        att = Attendance(
            guard_id=schedule.guard_id,
            schedule_id=schedule.id,
            check_in_time=at,
            status=status,
            comments=req.comments,
            location_latitude=req.latitude,
            location_longitude=req.longitude,
            within_geofence=within,
        )
        db.add(att)
        db.flush()
        audit.record(db, "attendance", att.id, "CHECK_IN", actor, {"after": snapshot(att, _SNAPSHOT_FIELDS)})
    except DomainError:
        db.rollback()
        raise

    commit(db, "Already checked in for this schedule")
    logger.info(
        "check_in",
        attendance_id=str(att.id),
        schedule_id=str(schedule.id),
        status=status,
        within_geofence=within,
    )
    return att


def check_out(
    db: Session,
    actor: Identity,
    attendance_id: uuid.UUID,
    req: CheckOutRequest,
    now: Optional[datetime] = None,
) -> Attendance:
    try:
        att = get_attendance(db, attendance_id)
        _ensure_own(actor, att.guard)
        if att.status == "absent":
            raise ValidationError("Cannot check out of an absence record")
        if att.check_in_time is None:
            raise ValidationError("Cannot check out before checking in")
        if att.check_out_time is not None:
            raise ConflictError("Already checked out")

        at = to_utc_naive(req.check_out_time or now or datetime.utcnow())
        if at < att.check_in_time.replace(tzinfo=None):
            raise ValidationError("check_out_time must not be before check_in_time")

        att.check_out_time = at
        if req.comments:
            att.comments = req.comments
        if att.schedule is not None:
            _close_schedule(att.schedule, att.status, at)
        audit.record(db, "attendance", att.id, "CHECK_OUT", actor, {"check_out_time": at.isoformat()})
    except DomainError:
        db.rollback()
        raise

    commit(db)
    logger.info("check_out", attendance_id=str(att.id))
    return att


def mark_absent(db: Session, actor: Identity, req: AbsentRequest) -> Attendance:
    try:
        schedule = _load_schedule(db, req.schedule_id)
        if schedule.status == "cancelled":
            raise ValidationError("Cannot mark a cancelled schedule absent")
        if schedule.attendance is not None:
            raise ConflictError("Attendance already recorded for this schedule")

        att = Attendance(
            guard_id=schedule.guard_id,
            schedule_id=schedule.id,
            status="absent",
            comments=req.comments,
        )
        db.add(att)
        schedule.status = "missed"
        db.flush()
        audit.record(db, "attendance", att.id, "ABSENT", actor, {"schedule_id": str(schedule.id)})
    except DomainError:
        db.rollback()
        raise

    commit(db, "Attendance already recorded for this schedule")
    logger.info("marked_absent", attendance_id=str(att.id), schedule_id=str(schedule.id))
    return att


def get_attendance(db: Session, attendance_id: uuid.UUID) -> Attendance:
    att = (
        db.query(Attendance)
        .options(joinedload(Attendance.guard), joinedload(Attendance.schedule))
        .filter(Attendance.id == attendance_id)
        .first()
    )
    if att is None:
        raise NotFoundError("Attendance not found")
    return att


def list_attendance(
    db: Session,
    guard_id: Optional[uuid.UUID] = None,
    schedule_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
) -> List[Attendance]:
    query = db.query(Attendance)
    if guard_id:
        query = query.filter(Attendance.guard_id == guard_id)
    if schedule_id:
        query = query.filter(Attendance.schedule_id == schedule_id)
    if status:
        query = query.filter(Attendance.status == status)
    return query.order_by(Attendance.created_at.desc()).all()


def update_attendance(db: Session, actor: Identity, attendance_id: uuid.UUID, patch: AttendanceUpdate) -> Attendance:
    att = get_attendance(db, attendance_id)
    data = patch.model_dump(exclude_unset=True)
    for key in ("check_in_time", "check_out_time"):
        if data.get(key):
            data[key] = to_utc_naive(data[key])

    check_in_at = data.get("check_in_time", att.check_in_time)
    check_out_at = data.get("check_out_time", att.check_out_time)
    if check_in_at and check_out_at and check_out_at.replace(tzinfo=None) < check_in_at.replace(tzinfo=None):
        raise ValidationError("check_out_time must not be before check_in_time")

    diff = apply_patch(att, data)
    if att.schedule is not None:
        before = att.schedule.status
        _close_schedule(att.schedule, att.status, att.check_out_time)
        if att.schedule.status != before:
            diff["schedule_status"] = {"before": before, "after": att.schedule.status}
    if diff:
        audit.record(db, "attendance", att.id, "UPDATE", actor, diff)
    commit(db)
    return att
