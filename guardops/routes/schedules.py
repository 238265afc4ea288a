from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.scheduling import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from ..services import scheduling
from ..services.permissions import Identity


router = APIRouter(prefix="/schedules", tags=["schedules"])


@router.get("", response_model=List[ScheduleResponse])
def list_schedules(
    date_val: Optional[date] = Query(default=None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    guard_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("schedules", "read")),
):
    """
    List schedules by exactly one filter: `date`, `start_date`+`end_date`
    (inclusive), or `guard_id`.
    """
    rows = scheduling.list_schedules(db, date_val=date_val, start_date=start_date, end_date=end_date, guard_id=guard_id)
    return [scheduling.enrich_schedule(s) for s in rows]


@router.post("", response_model=ScheduleResponse, status_code=201)
def create_schedule(
    payload: ScheduleCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("schedules", "create")),
):
    return scheduling.enrich_schedule(scheduling.create_schedule(db, actor, payload))


@router.get("/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(schedule_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("schedules", "read"))):
    return scheduling.enrich_schedule(scheduling.get_schedule(db, schedule_id))


@router.patch("/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(
    schedule_id: uuid.UUID,
    patch: ScheduleUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("schedules", "update")),
):
    return scheduling.enrich_schedule(scheduling.update_schedule(db, actor, schedule_id, patch))
