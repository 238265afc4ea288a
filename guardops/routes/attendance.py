from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.scheduling import (
    AbsentRequest,
    AttendanceCreate,
    AttendanceResponse,
    AttendanceStatus,
    AttendanceUpdate,
    CheckInRequest,
    CheckOutRequest,
)
from ..services import attendance as attendance_service
from ..services.permissions import Identity


router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.get("", response_model=List[AttendanceResponse])
def list_attendance(
    guard_id: Optional[uuid.UUID] = None,
    schedule_id: Optional[uuid.UUID] = None,
    status: Optional[AttendanceStatus] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("attendance", "read")),
):
    return attendance_service.list_attendance(db, guard_id=guard_id, schedule_id=schedule_id, status=status)


@router.post("", response_model=AttendanceResponse, status_code=201)
def create_attendance(
    payload: AttendanceCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("attendance", "create")),
):
    return attendance_service.create_attendance(db, actor, payload)


@router.post("/check-in", response_model=AttendanceResponse, status_code=201)
def check_in(
    req: CheckInRequest,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("attendance", "create")),
):
    """Check in to a schedule; on-time or late is derived from the shift start."""
    return attendance_service.check_in(db, actor, req)


@router.post("/absent", response_model=AttendanceResponse, status_code=201)
def mark_absent(
    req: AbsentRequest,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("attendance", "update")),
):
    return attendance_service.mark_absent(db, actor, req)


@router.get("/{attendance_id}", response_model=AttendanceResponse)
def get_attendance(
    attendance_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permission("attendance", "read")),
):
    return attendance_service.get_attendance(db, attendance_id)


@router.post("/{attendance_id}/check-out", response_model=AttendanceResponse)
def check_out(
    attendance_id: uuid.UUID,
    req: Optional[CheckOutRequest] = None,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("attendance", "create")),
):
    return attendance_service.check_out(db, actor, attendance_id, req or CheckOutRequest())


@router.patch("/{attendance_id}", response_model=AttendanceResponse)
def update_attendance(
    attendance_id: uuid.UUID,
    patch: AttendanceUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("attendance", "update")),
):
    return attendance_service.update_attendance(db, actor, attendance_id, patch)
