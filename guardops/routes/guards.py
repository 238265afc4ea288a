from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.guards import GuardCreate, GuardResponse, GuardStatus, GuardUpdate
from ..services import guards as guard_service
from ..services.permissions import Identity


router = APIRouter(prefix="/guards", tags=["guards"])


@router.get("", response_model=List[GuardResponse])
def list_guards(
    status: Optional[GuardStatus] = None,
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("guards", "read")),
):
    return guard_service.list_guards(db, status=status, q=q)


@router.post("", response_model=GuardResponse, status_code=201)
def create_guard(
    payload: GuardCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("guards", "create")),
):
    """
    Create a guard profile.

    Send either a nested `user` block to create the login account in the
    same transaction, or the `user_id` of an existing account.
    """
    return guard_service.create_guard(db, actor, payload)


@router.get("/{guard_id}", response_model=GuardResponse)
def get_guard(guard_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("guards", "read"))):
    return guard_service.get_guard(db, guard_id)


@router.patch("/{guard_id}", response_model=GuardResponse)
def update_guard(
    guard_id: uuid.UUID,
    patch: GuardUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("guards", "update")),
):
    return guard_service.update_guard(db, actor, guard_id, patch)
