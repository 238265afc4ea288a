from datetime import datetime
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from typing import Optional, List
import uuid

from ..db import get_db
from ..auth.security import require_permission
from ..errors import ValidationError
from ..logging import structlog
from ..schemas.incidents import (
    IncidentCategoryCreate,
    IncidentCategoryResponse,
    IncidentCategoryUpdate,
    IncidentCreate,
    IncidentResponse,
    IncidentStatus,
    IncidentUpdate,
)
from ..services import incidents as incident_service
from ..services.incidents import PhotoUpload
from ..services.permissions import Identity
from ..storage.local_provider import get_storage
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/incidents", tags=["incidents"])
categories_router = APIRouter(prefix="/incident-categories", tags=["incidents"])
logger = structlog.get_logger(__name__)


@categories_router.get("", response_model=List[IncidentCategoryResponse])
def list_categories(db: Session = Depends(get_db), _=Depends(require_permission("incident_categories", "read"))):
    return incident_service.list_categories(db)


@categories_router.post("", response_model=IncidentCategoryResponse, status_code=201)
def create_category(
    payload: IncidentCategoryCreate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("incident_categories", "create")),
):
    return incident_service.create_category(db, actor, payload)


@categories_router.get("/{category_id}", response_model=IncidentCategoryResponse)
def get_category(
    category_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(require_permission("incident_categories", "read")),
):
    return incident_service.get_category(db, category_id)


@categories_router.patch("/{category_id}", response_model=IncidentCategoryResponse)
def update_category(
    category_id: uuid.UUID,
    patch: IncidentCategoryUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("incident_categories", "update")),
):
    return incident_service.update_category(db, actor, category_id, patch)


@router.get("", response_model=List[IncidentResponse])
def list_incidents(
    reported_by: Optional[uuid.UUID] = None,
    location_id: Optional[uuid.UUID] = None,
    status: Optional[IncidentStatus] = None,
    category_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _=Depends(require_permission("incidents", "read")),
):
    rows = incident_service.list_incidents(
        db, reported_by=reported_by, location_id=location_id, status=status, category_id=category_id
    )
    return [incident_service.enrich_incident(i) for i in rows]


@router.post("", response_model=IncidentResponse, status_code=201)
def create_incident(
    title: str = Form(...),
    description: str = Form(...),
    location_id: str = Form(...),
    category_id: str = Form(...),
    date: Optional[datetime] = Form(None),
    priority: Optional[str] = Form(None),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    reported_by: Optional[str] = Form(None),
    photos: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    actor: Identity = Depends(require_permission("incidents", "create")),
):
    """
    Report an incident as multipart form data with up to five `photos`.

    The reporter is always the authenticated caller; a `reported_by` field
    sent by the client is ignored.
    """
    if reported_by and reported_by != str(actor.user_id):
        logger.info("incident_reporter_ignored", supplied=reported_by, actor=str(actor.user_id))
    try:
        payload = IncidentCreate(
            title=title,
            description=description,
            location_id=location_id,
            category_id=category_id,
            date=date,
            priority=priority or None,
            latitude=latitude,
            longitude=longitude,
        )
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid incident data",
            errors=jsonable_encoder(e.errors(include_url=False, include_context=False)),
        )

    uploads = [
        PhotoUpload(filename=f.filename or "photo", content_type=f.content_type, data=f.file.read())
        for f in (photos or [])
        if f.filename
    ]
    incident = incident_service.create_incident(db, actor, payload, uploads, storage)
    return incident_service.enrich_incident(incident)


@router.get("/{incident_id}", response_model=IncidentResponse)
def get_incident(incident_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(require_permission("incidents", "read"))):
    return incident_service.enrich_incident(incident_service.get_incident(db, incident_id))


@router.patch("/{incident_id}", response_model=IncidentResponse)
def update_incident(
    incident_id: uuid.UUID,
    patch: IncidentUpdate,
    db: Session = Depends(get_db),
    actor: Identity = Depends(require_permission("incidents", "update")),
):
    """
    Update an incident. Status moves one step forward at a time; admins may
    send `override: true` to jump or regress, which is audited.
    """
    return incident_service.enrich_incident(incident_service.update_incident(db, actor, incident_id, patch))
