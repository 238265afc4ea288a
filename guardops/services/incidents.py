"""
Incident reporting service.
Incidents move forward through open -> investigating -> resolved -> closed;
photos are stored together with the incident or not at all.
"""
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

import structlog
from slugify import slugify
from sqlalchemy.orm import Session, joinedload, selectinload

from ..config import settings
from ..errors import ConflictError, DomainError, InternalError, NotFoundError, ValidationError
from ..models.models import Incident, IncidentCategory, IncidentPhoto, Location
from ..schemas.incidents import (
    IncidentCategoryCreate,
    IncidentCategoryUpdate,
    IncidentCreate,
    IncidentUpdate,
)
from ..storage.provider import StorageProvider
from . import audit
from .permissions import Identity, check_permission
from .persistence import apply_patch, commit, get_or_404, snapshot
from .time_rules import to_utc_naive


logger = structlog.get_logger(__name__)

TRANSITIONS: Dict[str, Set[str]] = {
    "open": {"investigating"},
    "investigating": {"resolved"},
    "resolved": {"closed"},
    "closed": set(),
}

ACTIVE_STATUSES = ("open", "investigating")


@dataclass
class PhotoUpload:
    filename: str
    content_type: Optional[str]
    data: bytes


def is_transition_allowed(current: str, new: str) -> bool:
    if current == new:
        return True
    return new in TRANSITIONS.get(current, set())


# Categories

def create_category(db: Session, actor: Identity, payload: IncidentCategoryCreate) -> IncidentCategory:
    if db.query(IncidentCategory.id).filter(IncidentCategory.name == payload.name).first():
        raise ConflictError(f"Incident category '{payload.name}' already exists")
    category = IncidentCategory(**payload.model_dump())
    db.add(category)
    db.flush()
    audit.record(db, "incident_category", category.id, "CREATE", actor, {"after": snapshot(category, ("name", "priority"))})
    commit(db, f"Incident category '{payload.name}' already exists")
    return category


def list_categories(db: Session) -> List[IncidentCategory]:
    return db.query(IncidentCategory).order_by(IncidentCategory.name.asc()).all()


def get_category(db: Session, category_id: uuid.UUID) -> IncidentCategory:
    return get_or_404(db, IncidentCategory, category_id, "Incident category")


def update_category(db: Session, actor: Identity, category_id: uuid.UUID, patch: IncidentCategoryUpdate) -> IncidentCategory:
    category = get_category(db, category_id)
    data = patch.model_dump(exclude_unset=True)
    name = data.get("name")
    if name and name != category.name:
        if db.query(IncidentCategory.id).filter(IncidentCategory.name == name).first():
            raise ConflictError(f"Incident category '{name}' already exists")
    diff = apply_patch(category, data)
    if diff:
        audit.record(db, "incident_category", category.id, "UPDATE", actor, diff)
    commit(db)
    return category


# Photos

def validate_photos(photos: Sequence[PhotoUpload]) -> None:
    """Reject the whole batch before anything is written."""
    if len(photos) > settings.max_photos_per_incident:
        raise ValidationError(f"At most {settings.max_photos_per_incident} photos per incident")
    errors = []
    for p in photos:
        if not (p.content_type or "").startswith("image/"):
            errors.append({"file": p.filename, "error": "not an image"})
        elif len(p.data) > settings.max_photo_bytes:
            errors.append({"file": p.filename, "error": f"exceeds {settings.max_photo_bytes} bytes"})
        elif not p.data:
            errors.append({"file": p.filename, "error": "empty file"})
    if errors:
        raise ValidationError("Invalid incident photos", errors=errors)


def photo_key(incident_id: uuid.UUID, photo: PhotoUpload, when: datetime) -> str:
    name = Path(photo.filename or "photo")
    ext = name.suffix.lower() or mimetypes.guess_extension(photo.content_type or "") or ""
    stem = slugify(name.stem, max_length=50) or "photo"
    return f"incidents/{when.year}/{incident_id}/{uuid.uuid4().hex}-{stem}{ext}"


def _discard(storage: StorageProvider, keys: List[str]) -> None:
    for key in keys:
        storage.delete(key)


# Incidents

def create_incident(
    db: Session,
    actor: Identity,
    payload: IncidentCreate,
    photos: Sequence[PhotoUpload],
    storage: StorageProvider,
) -> Incident:
    """
    Report an incident with its photos.

    The reporter is always the caller. Photo files are written before the
    commit and removed again if anything fails.
    """
    validate_photos(photos)
    get_or_404(db, Location, payload.location_id, "Location")
    category = get_or_404(db, IncidentCategory, payload.category_id, "Incident category")

    now = datetime.utcnow()
    written: List[str] = []
    try:
        incident = Incident(
            reported_by=actor.user_id,
            location_id=payload.location_id,
            category_id=category.id,
            title=payload.title,
            description=payload.description,
            date=to_utc_naive(payload.date) if payload.date else now,
            status="open",
            priority=payload.priority or category.priority,
            latitude=payload.latitude,
            longitude=payload.longitude,
        )
        db.add(incident)
        db.flush()

        for p in photos:
            key = photo_key(incident.id, p, now)
            storage.put(key, p.data, p.content_type)
            written.append(key)
            db.add(IncidentPhoto(
                incident_id=incident.id,
                photo_url=storage.get_url(key),
                storage_key=key,
                content_type=p.content_type,
                size_bytes=len(p.data),
            ))

        audit.record(
            db, "incident", incident.id, "CREATE", actor,
            {"after": snapshot(incident, ("title", "status", "priority", "location_id", "category_id")), "photos": len(written)},
        )
        commit(db)
    except OSError as e:
        db.rollback()
        _discard(storage, written)
        logger.error("incident_photo_store_failed", error=str(e), stored=len(written))
        raise InternalError("Failed to store incident photos")
    except Exception:
        db.rollback()
        _discard(storage, written)
        raise

    logger.info("incident_created", incident_id=str(incident.id), photos=len(written), priority=incident.priority)
    return get_incident(db, incident.id)


def get_incident(db: Session, incident_id: uuid.UUID) -> Incident:
    incident = (
        db.query(Incident)
        .options(
            joinedload(Incident.reporter),
            joinedload(Incident.location),
            joinedload(Incident.category),
            selectinload(Incident.photos),
        )
        .filter(Incident.id == incident_id)
        .first()
    )
    if incident is None:
        raise NotFoundError("Incident not found")
    return incident


def list_incidents(
    db: Session,
    reported_by: Optional[uuid.UUID] = None,
    location_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    category_id: Optional[uuid.UUID] = None,
) -> List[Incident]:
    query = db.query(Incident).options(
        joinedload(Incident.reporter),
        joinedload(Incident.location),
        joinedload(Incident.category),
        selectinload(Incident.photos),
    )
    if reported_by:
        query = query.filter(Incident.reported_by == reported_by)
    if location_id:
        query = query.filter(Incident.location_id == location_id)
    if status:
        query = query.filter(Incident.status == status)
    if category_id:
        query = query.filter(Incident.category_id == category_id)
    return query.order_by(Incident.date.desc(), Incident.created_at.desc()).all()


def update_incident(db: Session, actor: Identity, incident_id: uuid.UUID, patch: IncidentUpdate) -> Incident:
    incident = get_incident(db, incident_id)
    data = patch.model_dump(exclude_unset=True)
    override = data.pop("override", False)

    action = "UPDATE"
    new_status = data.get("status")
    if new_status and new_status != incident.status:
        if is_transition_allowed(incident.status, new_status):
            action = "STATUS_CHANGE"
        elif not override:
            raise ConflictError(f"Cannot move incident from '{incident.status}' to '{new_status}'")
        else:
            check_permission(actor, "incidents", "override")
            action = "OVERRIDE"
            logger.warning(
                "incident_status_override",
                incident_id=str(incident.id),
                before=incident.status,
                after=new_status,
                actor=str(actor.user_id),
            )

    try:
        if data.get("category_id"):
            get_or_404(db, IncidentCategory, data["category_id"], "Incident category")
        diff = apply_patch(incident, data)
        if diff:
            if action == "STATUS_CHANGE" and set(diff) != {"status"}:
                action = "UPDATE"
            audit.record(db, "incident", incident.id, action, actor, diff)
    except DomainError:
        db.rollback()
        raise

    commit(db)
    return get_incident(db, incident.id)


def enrich_incident(incident: Incident) -> dict:
    reporter = incident.reporter
    location = incident.location
    category = incident.category
    return {
        "id": incident.id,
        "title": incident.title,
        "description": incident.description,
        "date": incident.date,
        "status": incident.status,
        "priority": incident.priority,
        "reported_by": incident.reported_by,
        "location_id": incident.location_id,
        "category_id": incident.category_id,
        "latitude": incident.latitude,
        "longitude": incident.longitude,
        "created_at": incident.created_at,
        "reporter": {
            "id": reporter.id,
            "username": reporter.username,
            "name": reporter.full_name or reporter.username,
        } if reporter else None,
        "location": {"id": location.id, "name": location.name, "address": location.address} if location else None,
        "category": {"id": category.id, "name": category.name, "priority": category.priority} if category else None,
        "photos": [
            {"id": p.id, "photo_url": p.photo_url, "content_type": p.content_type, "size_bytes": p.size_bytes}
            for p in incident.photos
        ],
    }
