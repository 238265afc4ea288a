import re
import uuid
from datetime import date
from typing import List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..errors import ConflictError, DomainError, NotFoundError
from ..models.models import Guard, User
from ..schemas.guards import GuardCreate, GuardUpdate
from . import audit
from .permissions import GUARD, Identity
from .persistence import apply_patch, commit, snapshot
from .users import build_user


logger = structlog.get_logger(__name__)

GUARD_CODE_RE = re.compile(r"^G-(\d{4})-(\d{3})$")

_SNAPSHOT_FIELDS = ("user_id", "guard_code", "national_id", "position", "status", "join_date")


def next_guard_code(db: Session, year: Optional[int] = None) -> str:
    """
    Next free guard code for a year, in the form G-<year>-NNN.

    Scans existing codes for the year and increments the highest sequence.
    """
    year = year or date.today().year
    prefix = f"G-{year}-"
    max_seq = 0
    for (code,) in db.query(Guard.guard_code).filter(Guard.guard_code.like(f"{prefix}%")).all():
        m = GUARD_CODE_RE.match(code or "")
        if m:
            max_seq = max(max_seq, int(m.group(2)))
    if max_seq >= 999:
        raise ConflictError(f"Guard code sequence for {year} is exhausted")
    return f"{prefix}{max_seq + 1:03d}"


def _ensure_unique(db: Session, guard_code: Optional[str], national_id: Optional[str], exclude_id=None) -> None:
    if guard_code:
        q = db.query(Guard.id).filter(Guard.guard_code == guard_code)
        if exclude_id:
            q = q.filter(Guard.id != exclude_id)
        if q.first():
            raise ConflictError(f"Guard code '{guard_code}' is already in use")
    if national_id:
        q = db.query(Guard.id).filter(Guard.national_id == national_id)
        if exclude_id:
            q = q.filter(Guard.id != exclude_id)
        if q.first():
            raise ConflictError(f"National ID '{national_id}' is already registered")


def create_guard(db: Session, actor: Identity, payload: GuardCreate) -> Guard:
    """
    Create a guard profile, optionally together with its login account.

    Both rows are written in one transaction: if the guard insert fails, the
    user created for it is rolled back too.
    """
    try:
        _ensure_unique(db, payload.guard_code, payload.national_id)

        if payload.user is not None:
            u = payload.user
            user = build_user(
                db,
                username=u.username,
                password=u.password,
                role_name=GUARD,
                first_name=u.first_name,
                last_name=u.last_name,
                email=u.email,
                phone=u.phone,
            )
        else:
            user = db.get(User, payload.user_id)
            if user is None:
                raise NotFoundError("User not found")
            if db.query(Guard.id).filter(Guard.user_id == user.id).first():
                raise ConflictError("User already has a guard profile")

        guard = Guard(
            user_id=user.id,
            guard_code=payload.guard_code or next_guard_code(db),
            national_id=payload.national_id,
            dob=payload.dob,
            address=payload.address,
            emergency_contact=payload.emergency_contact,
            join_date=payload.join_date or date.today(),
            position=payload.position,
            status=payload.status,
            performance=0,
        )
        db.add(guard)
        db.flush()
        audit.record(db, "guard", guard.id, "CREATE", actor, {"after": snapshot(guard, _SNAPSHOT_FIELDS)})
    except DomainError:
        db.rollback()
        raise

    commit(db, "Guard conflicts with an existing username, guard code or national ID")
    logger.info("guard_created", guard_id=str(guard.id), guard_code=guard.guard_code, new_user=payload.user is not None)
    return get_guard(db, guard.id)


def get_guard(db: Session, guard_id: uuid.UUID) -> Guard:
    guard = (
        db.query(Guard)
        .options(joinedload(Guard.user))
        .filter(Guard.id == guard_id)
        .first()
    )
    if guard is None:
        raise NotFoundError("Guard not found")
    return guard


def list_guards(db: Session, status: Optional[str] = None, q: Optional[str] = None) -> List[Guard]:
    query = db.query(Guard).options(joinedload(Guard.user)).join(User, Guard.user_id == User.id)
    if status:
        query = query.filter(Guard.status == status)
    if q:
        like = f"%{q}%"
        query = query.filter(
            or_(
                Guard.guard_code.ilike(like),
                User.first_name.ilike(like),
                User.last_name.ilike(like),
                User.username.ilike(like),
            )
        )
    return query.order_by(Guard.guard_code.asc()).all()


def update_guard(db: Session, actor: Identity, guard_id: uuid.UUID, patch: GuardUpdate) -> Guard:
    guard = get_guard(db, guard_id)
    data = patch.model_dump(exclude_unset=True)
    try:
        if "national_id" in data:
            _ensure_unique(db, None, data["national_id"], exclude_id=guard.id)
    except DomainError:
        db.rollback()
        raise
    diff = apply_patch(guard, data)
    if diff:
        audit.record(db, "guard", guard.id, "UPDATE", actor, diff)
    commit(db, "National ID is already registered")
    return get_guard(db, guard.id)
