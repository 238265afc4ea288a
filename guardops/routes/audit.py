from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.dashboard import AuditLogResponse
from ..services import audit


router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(require_permission("audit", "read")),
):
    """Newest entries first; `verified` is false when an entry's hash no longer matches."""
    entries = audit.get_audit_logs(db, entity_type=entity_type, entity_id=entity_id, limit=limit, offset=offset)
    return [
        AuditLogResponse.model_validate(e).model_copy(update={"verified": audit.verify(e)})
        for e in entries
    ]
