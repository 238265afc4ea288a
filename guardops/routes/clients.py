from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.clients import (
    ClientCreate,
    ClientDetailResponse,
    ClientResponse,
    ClientStatus,
    ClientUpdate,
)
from ..services import clients as client_service
from ..services.permissions import Identity


router = APIRouter(prefix="/clients", tags=["clients"])


@router.get("", response_model=List[ClientResponse])
def list_clients(
    status: Optional[ClientStatus] = None,
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("clients", "read")),
):
    return client_service.list_clients(db, status=status, q=q)


@router.post("", response_model=ClientResponse, status_code=201)
def create_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("clients", "create")),
):
    return client_service.create_client(db, actor, payload)


@router.get("/{client_id}", response_model=ClientDetailResponse)
def get_client(client_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("clients", "read"))):
    return client_service.get_client(db, client_id)


@router.patch("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: uuid.UUID,
    patch: ClientUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("clients", "update")),
):
    return client_service.update_client(db, actor, client_id, patch)
