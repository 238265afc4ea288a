"""
Schedule conflict detection service.
HARD STOP rule: a guard never holds two non-cancelled schedules whose
time windows overlap.
"""
import uuid
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, joinedload

from ..errors import ConflictError
from ..models.models import Schedule


logger = structlog.get_logger(__name__)

Window = Tuple[datetime, datetime]


def shift_window(date_val: date, start_time: time, end_time: time) -> Window:
    """
    Absolute [start, end) window of a shift worked on a given local date.

    A shift whose end is not after its start wraps past midnight and ends on
    the following day.
    """
    start = datetime.combine(date_val, start_time)
    end_date = date_val + timedelta(days=1) if end_time <= start_time else date_val
    return start, datetime.combine(end_date, end_time)


def windows_overlap(a: Window, b: Window) -> bool:
    """Half-open overlap test; windows that only touch do not collide."""
    return a[0] < b[1] and b[0] < a[1]


def schedule_window(schedule: Schedule) -> Window:
    return shift_window(schedule.date, schedule.shift.start_time, schedule.shift.end_time)


def get_conflicting_schedules(
    db: Session,
    guard_id: uuid.UUID,
    date_val: date,
    start_time: time,
    end_time: time,
    exclude_schedule_id: Optional[uuid.UUID] = None,
) -> List[Schedule]:
    """
    Non-cancelled schedules of a guard that collide with a candidate window.

    Only the previous, same and next day can collide, since a window spans at
    most one midnight.

    Args:
        db: Database session
        guard_id: Guard ID
        date_val: Local date of the candidate schedule
        start_time: Shift start (local wall clock)
        end_time: Shift end (local wall clock)
        exclude_schedule_id: Schedule being updated, skipped in the check

    Returns:
        List of conflicting Schedule objects
    """
    window = shift_window(date_val, start_time, end_time)

    query = (
        db.query(Schedule)
        .options(joinedload(Schedule.shift))
        .filter(
            Schedule.guard_id == guard_id,
            Schedule.date >= date_val - timedelta(days=1),
            Schedule.date <= date_val + timedelta(days=1),
            Schedule.status != "cancelled",
        )
    )
    if exclude_schedule_id:
        query = query.filter(Schedule.id != exclude_schedule_id)

    return [s for s in query.all() if windows_overlap(window, schedule_window(s))]


def has_overlap(
    db: Session,
    guard_id: uuid.UUID,
    date_val: date,
    start_time: time,
    end_time: time,
    exclude_schedule_id: Optional[uuid.UUID] = None,
) -> bool:
    return bool(get_conflicting_schedules(db, guard_id, date_val, start_time, end_time, exclude_schedule_id))


def ensure_no_conflict(
    db: Session,
    guard_id: uuid.UUID,
    date_val: date,
    start_time: time,
    end_time: time,
    exclude_schedule_id: Optional[uuid.UUID] = None,
) -> None:
    conflicts = get_conflicting_schedules(db, guard_id, date_val, start_time, end_time, exclude_schedule_id)
    if conflicts:
        ids = [str(s.id) for s in conflicts]
        logger.info("schedule_conflict", guard_id=str(guard_id), date=date_val.isoformat(), conflicts=ids)
        raise ConflictError(
            "Guard already has an overlapping schedule",
            errors=[{"schedule_id": i} for i in ids],
        )
