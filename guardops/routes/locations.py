from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.clients import LocationCreate, LocationResponse, LocationStatus, LocationUpdate
from ..services import clients as client_service
from ..services.permissions import Identity


router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=List[LocationResponse])
def list_locations(
    client_id: Optional[uuid.UUID] = None,
    status: Optional[LocationStatus] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("locations", "read")),
):
    return client_service.list_locations(db, client_id=client_id, status=status)


@router.post("", response_model=LocationResponse, status_code=201)
def create_location(
    payload: LocationCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("locations", "create")),
):
    return client_service.create_location(db, actor, payload)


@router.get("/{location_id}", response_model=LocationResponse)
def get_location(location_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("locations", "read"))):
    return client_service.get_location(db, location_id)


@router.patch("/{location_id}", response_model=LocationResponse)
def update_location(
    location_id: uuid.UUID,
    patch: LocationUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("locations", "update")),
):
    return client_service.update_location(db, actor, location_id, patch)
