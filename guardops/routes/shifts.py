from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.scheduling import ShiftCreate, ShiftResponse, ShiftUpdate
from ..services import scheduling
from ..services.permissions import Identity


router = APIRouter(prefix="/shifts", tags=["shifts"])


@router.get("", response_model=List[ShiftResponse])
def list_shifts(db: Session = Depends(get_db), _=Depends(require_permission("shifts", "read"))):
    return scheduling.list_shifts(db)


@router.post("", response_model=ShiftResponse, status_code=201)
def create_shift(
    payload: ShiftCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("shifts", "create")),
):
    return scheduling.create_shift(db, actor, payload)


@router.get("/{shift_id}", response_model=ShiftResponse)
def get_shift(shift_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("shifts", "read"))):
    return scheduling.get_shift(db, shift_id)


@router.patch("/{shift_id}", response_model=ShiftResponse)
def update_shift(
    shift_id: uuid.UUID,
    patch: ShiftUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("shifts", "update")),
):
    return scheduling.update_shift(db, actor, shift_id, patch)
