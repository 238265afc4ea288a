import uuid
from typing import List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..auth.security import get_password_hash
from ..errors import ConflictError, ValidationError
from ..models.models import Role, User
from ..schemas.users import UserCreate, UserUpdate
from . import audit
from .permissions import ROLE_DESCRIPTIONS, ROLE_NAMES, Identity
from .persistence import apply_patch, commit, get_or_404, snapshot


logger = structlog.get_logger(__name__)

_PUBLIC_FIELDS = ("username", "first_name", "last_name", "email", "phone", "role_id", "active")


def ensure_roles(db: Session) -> None:
    """Insert any missing built-in roles."""
    existing = {name for (name,) in db.query(Role.name).all()}
    for name in ROLE_NAMES:
        if name not in existing:
            db.add(Role(name=name, description=ROLE_DESCRIPTIONS[name]))
    db.commit()


def list_roles(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.name.asc()).all()


def get_role_by_name(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if role is None:
        raise ValidationError(f"Unknown role '{name}'")
    return role


def ensure_username_free(db: Session, username: str) -> None:
    if db.query(User.id).filter(User.username == username).first():
        raise ConflictError(f"Username '{username}' is already taken")


def build_user(
    db: Session,
    username: str,
    password: str,
    role_name: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    active: bool = True,
) -> User:
    """Validate and add a new user to the session without committing."""
    ensure_username_free(db, username)
    role = get_role_by_name(db, role_name)
    user = User(
        username=username,
        password_hash=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        role_id=role.id,
        active=active,
    )
    user.role = role
    db.add(user)
    db.flush()
    return user


def create_user(db: Session, actor: Identity, payload: UserCreate) -> User:
    user = build_user(
        db,
        username=payload.username,
        password=payload.password,
        role_name=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        phone=payload.phone,
        active=payload.active,
    )
    audit.record(db, "user", user.id, "CREATE", actor, {"after": snapshot(user, _PUBLIC_FIELDS)})
    commit(db, f"Username '{payload.username}' is already taken")
    logger.info("user_created", user_id=str(user.id), role=payload.role)
    return get_user(db, user.id)


def get_user(db: Session, user_id: uuid.UUID) -> User:
    get_or_404(db, User, user_id, "User")
    return db.query(User).options(joinedload(User.role)).filter(User.id == user_id).one()


def list_users(
    db: Session,
    q: Optional[str] = None,
    role: Optional[str] = None,
    active: Optional[bool] = None,
) -> List[User]:
    query = db.query(User).options(joinedload(User.role))
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(User.username.ilike(like), User.first_name.ilike(like), User.last_name.ilike(like))
        )
    if role:
        query = query.join(Role, User.role_id == Role.id).filter(Role.name == role)
    if active is not None:
        query = query.filter(User.active == active)
    return query.order_by(User.username.asc()).all()


def update_user(db: Session, actor: Identity, user_id: uuid.UUID, patch: UserUpdate) -> User:
    user = get_user(db, user_id)
    data = patch.model_dump(exclude_unset=True)

    password = data.pop("password", None)
    role_name = data.pop("role", None)
    if role_name is not None:
        data["role_id"] = get_role_by_name(db, role_name).id

    diff = apply_patch(user, data)
    if password:
        user.password_hash = get_password_hash(password)
        diff["password"] = {"before": "***", "after": "***"}

    if diff:
        audit.record(db, "user", user.id, "UPDATE", actor, diff)
    commit(db)
    logger.info("user_updated", user_id=str(user.id), fields=sorted(diff))
    return get_user(db, user.id)
