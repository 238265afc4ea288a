"""
Audit logging service.
Append-only audit log with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import AuditLog
from .permissions import Identity


def _integrity_hash(canonical_data: Dict, secret: str) -> str:
    # Drop None values and sort keys so the hash is stable
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def record(
    db: Session,
    entity_type: str,
    entity_id: uuid.UUID,
    action: str,
    actor: Optional[Identity] = None,
    changes_json: Optional[Dict] = None,
) -> AuditLog:
    """
    Add an audit entry to the caller's unit of work.

    The entry is not committed here; it lands in the same transaction as the
    change it describes, so a rollback discards both.

    Args:
        db: Database session
        entity_type: guard|schedule|attendance|incident|user|client|location|shift|incident_category
        entity_id: Entity ID
        action: CREATE|UPDATE|STATUS_CHANGE|OVERRIDE|CHECK_IN|CHECK_OUT|ABSENT
        actor: Identity that performed the action (None for system jobs)
        changes_json: Before/after diff or created snapshot

    Returns:
        The pending AuditLog object
    """
    timestamp_utc = datetime.utcnow()
    actor_id = actor.user_id if actor else None
    actor_role = actor.role if actor else "system"

    integrity_hash = _integrity_hash(
        {
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "action": action,
            "actor_id": str(actor_id) if actor_id else None,
            "actor_role": actor_role,
            "timestamp_utc": timestamp_utc.isoformat(),
            "changes": changes_json,
        },
        settings.jwt_secret,
    )

    entry = AuditLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_id=actor_id,
        actor_role=actor_role,
        changes_json=changes_json,
        timestamp_utc=timestamp_utc,
        integrity_hash=integrity_hash,
    )
    db.add(entry)
    return entry


def verify(entry: AuditLog) -> bool:
    """Recompute the integrity hash of a stored entry."""
    timestamp = entry.timestamp_utc.replace(tzinfo=None)
    expected = _integrity_hash(
        {
            "entity_type": entry.entity_type,
            "entity_id": str(entry.entity_id),
            "action": entry.action,
            "actor_id": str(entry.actor_id) if entry.actor_id else None,
            "actor_role": entry.actor_role,
            "timestamp_utc": timestamp.isoformat(),
            "changes": entry.changes_json,
        },
        settings.jwt_secret,
    )
    return expected == entry.integrity_hash


def get_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AuditLog]:
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    return (
        query.order_by(AuditLog.timestamp_utc.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
