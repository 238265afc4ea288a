"""
Shift and schedule services.
Every write re-checks the guard's overlap rule inside the same transaction.
"""
import uuid
from datetime import date
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session, joinedload

from ..errors import DomainError, NotFoundError, ValidationError
from ..models.models import Guard, Location, Schedule, Shift
from ..schemas.scheduling import ScheduleCreate, ScheduleUpdate, ShiftCreate, ShiftUpdate
from . import audit
from .permissions import Identity
from .persistence import apply_patch, commit, get_or_404, snapshot
from .schedule_conflict import ensure_no_conflict


logger = structlog.get_logger(__name__)


# Shifts

def create_shift(db: Session, actor: Identity, payload: ShiftCreate) -> Shift:
    shift = Shift(**payload.model_dump())
    db.add(shift)
    db.flush()
    audit.record(db, "shift", shift.id, "CREATE", actor, {"after": snapshot(shift, ("name", "start_time", "end_time"))})
    commit(db)
    return shift


def get_shift(db: Session, shift_id: uuid.UUID) -> Shift:
    return get_or_404(db, Shift, shift_id, "Shift")


def list_shifts(db: Session) -> List[Shift]:
    return db.query(Shift).order_by(Shift.start_time.asc(), Shift.name.asc()).all()


def update_shift(db: Session, actor: Identity, shift_id: uuid.UUID, patch: ShiftUpdate) -> Shift:
    """
    Rename or retime a shift.

    Retiming moves the window of every schedule using the shift, so each of
    them is re-checked against the rest of its guard's schedules.
    """
    shift = get_shift(db, shift_id)
    data = patch.model_dump(exclude_unset=True)
    start = data.get("start_time", shift.start_time)
    end = data.get("end_time", shift.end_time)
    if start == end:
        raise ValidationError("start_time and end_time must differ")

    try:
        diff = apply_patch(shift, data)
        if "start_time" in diff or "end_time" in diff:
            affected = (
                db.query(Schedule)
                .filter(Schedule.shift_id == shift.id, Schedule.status != "cancelled")
                .all()
            )
            for s in affected:
                ensure_no_conflict(db, s.guard_id, s.date, start, end, exclude_schedule_id=s.id)
    except DomainError:
        db.rollback()
        raise

    if diff:
        audit.record(db, "shift", shift.id, "UPDATE", actor, diff)
    commit(db)
    return shift


# Schedules

def _lock_guard(db: Session, guard_id: uuid.UUID) -> Guard:
    # Serialises concurrent schedule writes for the same guard
    guard = db.query(Guard).filter(Guard.id == guard_id).with_for_update().first()
    if guard is None:
        raise NotFoundError("Guard not found")
    return guard


def _check_refs(db: Session, guard: Guard, location_id: uuid.UUID, shift_id: uuid.UUID):
    if guard.status != "active":
        raise ValidationError(f"Guard {guard.guard_code} is not active")
    location = get_or_404(db, Location, location_id, "Location")
    if location.status != "active":
        raise ValidationError(f"Location '{location.name}' is not active")
    return location, get_or_404(db, Shift, shift_id, "Shift")


def create_schedule(db: Session, actor: Identity, payload: ScheduleCreate) -> Schedule:
    try:
        guard = _lock_guard(db, payload.guard_id)
        _, shift = _check_refs(db, guard, payload.location_id, payload.shift_id)
        ensure_no_conflict(db, guard.id, payload.date, shift.start_time, shift.end_time)

        schedule = Schedule(
            guard_id=guard.id,
            location_id=payload.location_id,
            shift_id=shift.id,
            date=payload.date,
            status="scheduled",
            created_by=actor.user_id,
        )
        db.add(schedule)
        db.flush()
        audit.record(
            db, "schedule", schedule.id, "CREATE", actor,
            {"after": snapshot(schedule, ("guard_id", "location_id", "shift_id", "date", "status"))},
        )
    except DomainError:
        db.rollback()
        raise

    commit(db)
    logger.info("schedule_created", schedule_id=str(schedule.id), guard_id=str(guard.id), date=payload.date.isoformat())
    return get_schedule(db, schedule.id)


def get_schedule(db: Session, schedule_id: uuid.UUID) -> Schedule:
    schedule = (
        db.query(Schedule)
        .options(
            joinedload(Schedule.guard).joinedload(Guard.user),
            joinedload(Schedule.location),
            joinedload(Schedule.shift),
        )
        .filter(Schedule.id == schedule_id)
        .first()
    )
    if schedule is None:
        raise NotFoundError("Schedule not found")
    return schedule


def list_schedules(
    db: Session,
    date_val: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    guard_id: Optional[uuid.UUID] = None,
) -> List[Schedule]:
    """
    List schedules by exactly one filter mode: a single date, an inclusive
    date range, or a guard.
    """
    has_range = start_date is not None or end_date is not None
    modes = sum([date_val is not None, has_range, guard_id is not None])
    if modes != 1:
        raise ValidationError("Provide exactly one of: date, start_date+end_date, guard_id")

    query = db.query(Schedule).options(
        joinedload(Schedule.guard).joinedload(Guard.user),
        joinedload(Schedule.location),
        joinedload(Schedule.shift),
    )
    if date_val is not None:
        query = query.filter(Schedule.date == date_val)
    elif has_range:
        if start_date is None or end_date is None:
            raise ValidationError("start_date and end_date must be given together")
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date")
        query = query.filter(Schedule.date >= start_date, Schedule.date <= end_date)
    else:
        query = query.filter(Schedule.guard_id == guard_id)

    return query.order_by(Schedule.date.asc(), Schedule.created_at.asc()).all()


def update_schedule(db: Session, actor: Identity, schedule_id: uuid.UUID, patch: ScheduleUpdate) -> Schedule:
    schedule = get_schedule(db, schedule_id)
    data = patch.model_dump(exclude_unset=True)

    guard_id = data.get("guard_id", schedule.guard_id)
    location_id = data.get("location_id", schedule.location_id)
    shift_id = data.get("shift_id", schedule.shift_id)
    date_val = data.get("date", schedule.date)
    status = data.get("status", schedule.status)

    try:
        guard = _lock_guard(db, guard_id)
        if status != "cancelled":
            if {"guard_id", "location_id", "shift_id"} & data.keys():
                _, shift = _check_refs(db, guard, location_id, shift_id)
            else:
                shift = get_or_404(db, Shift, shift_id, "Shift")
            ensure_no_conflict(db, guard.id, date_val, shift.start_time, shift.end_time, exclude_schedule_id=schedule.id)
        diff = apply_patch(schedule, data)
        if diff:
            action = "STATUS_CHANGE" if set(diff) == {"status"} else "UPDATE"
            audit.record(db, "schedule", schedule.id, action, actor, diff)
    except DomainError:
        db.rollback()
        raise

    commit(db)
    return get_schedule(db, schedule.id)


def enrich_schedule(schedule: Schedule) -> dict:
    """Schedule row joined with guard, location and shift summaries."""
    guard = schedule.guard
    location = schedule.location
    shift = schedule.shift
    return {
        "id": schedule.id,
        "guard_id": schedule.guard_id,
        "location_id": schedule.location_id,
        "shift_id": schedule.shift_id,
        "date": schedule.date,
        "status": schedule.status,
        "created_by": schedule.created_by,
        "created_at": schedule.created_at,
        "guard": {
            "id": guard.id,
            "guard_code": guard.guard_code,
            "position": guard.position,
            "name": guard.user.full_name if guard.user else guard.guard_code,
        } if guard else None,
        "location": {
            "id": location.id,
            "name": location.name,
            "address": location.address,
        } if location else None,
        "shift": {
            "id": shift.id,
            "name": shift.name,
            "start_time": shift.start_time,
            "end_time": shift.end_time,
        } if shift else None,
    }
