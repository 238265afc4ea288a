"""
Session helpers shared by the domain services.
Each service call ends in exactly one commit or one rollback.
"""
import uuid
from datetime import date, datetime, time
from typing import Any, Dict, Type, TypeVar

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ConflictError, NotFoundError


logger = structlog.get_logger(__name__)

T = TypeVar("T")


def commit(db: Session, conflict_message: str = "Record conflicts with existing data") -> None:
    """
    Commit the unit of work.

    Unique-key violations surface as ConflictError; other storage errors are
    rolled back and re-raised for the application-level handler.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("integrity_error", error=str(e.orig))
        raise ConflictError(conflict_message)
    except SQLAlchemyError:
        db.rollback()
        raise


def get_or_404(db: Session, model: Type[T], obj_id: Any, label: str) -> T:
    obj = db.get(model, obj_id)
    if obj is None:
        raise NotFoundError(f"{label} not found")
    return obj


def apply_patch(obj: Any, values: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Set attributes on a model and return the before/after diff of changed fields."""
    diff = {}
    for key, value in values.items():
        before = getattr(obj, key)
        if before != value:
            diff[key] = {"before": jsonable(before), "after": jsonable(value)}
            setattr(obj, key, value)
    return diff


def jsonable(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def snapshot(obj: Any, fields) -> Dict[str, Any]:
    return {f: jsonable(getattr(obj, f)) for f in fields}
