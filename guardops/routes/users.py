from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.users import RoleResponse, UserCreate, UserResponse, UserUpdate
from ..services import users as user_service
from ..services.permissions import Identity


router = APIRouter(prefix="/users", tags=["users"])
roles_router = APIRouter(prefix="/roles", tags=["users"])


@roles_router.get("", response_model=List[RoleResponse])
def list_roles(db: Session = Depends(get_db), _=Depends(require_permission("roles", "read"))):
    return user_service.list_roles(db)


@router.get("", response_model=List[UserResponse])
def list_users(
    q: Optional[str] = None,
    role: Optional[str] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("users", "read")),
):
    """
    List users; password hashes are never included.

    Args:
        q: Search on username, first or last name
        role: Filter by role name
        active: Filter by active flag
    """
    return user_service.list_users(db, q=q, role=role, active=active)


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("users", "create")),
):
    return user_service.create_user(db, actor, payload)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("users", "read"))):
    return user_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: uuid.UUID,
    patch: UserUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("users", "update")),
):
    return user_service.update_user(db, actor, user_id, patch)
