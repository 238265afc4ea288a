import uuid
from typing import List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ..errors import NotFoundError, ValidationError
from ..models.models import Client, Location
from ..schemas.clients import ClientCreate, ClientUpdate, LocationCreate, LocationUpdate
from . import audit
from .permissions import Identity
from .persistence import apply_patch, commit, get_or_404, snapshot


logger = structlog.get_logger(__name__)


def create_client(db: Session, actor: Identity, payload: ClientCreate) -> Client:
    client = Client(**payload.model_dump())
    db.add(client)
    db.flush()
    audit.record(db, "client", client.id, "CREATE", actor, {"after": snapshot(client, ("name", "status", "contract_start", "contract_end"))})
    commit(db)
    logger.info("client_created", client_id=str(client.id))
    return client


def get_client(db: Session, client_id: uuid.UUID) -> Client:
    client = (
        db.query(Client)
        .options(selectinload(Client.locations))
        .filter(Client.id == client_id)
        .first()
    )
    if client is None:
        raise NotFoundError("Client not found")
    return client


def list_clients(db: Session, status: Optional[str] = None, q: Optional[str] = None) -> List[Client]:
    query = db.query(Client)
    if status:
        query = query.filter(Client.status == status)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Client.name.ilike(like), Client.contact_person.ilike(like)))
    return query.order_by(Client.name.asc()).all()


def update_client(db: Session, actor: Identity, client_id: uuid.UUID, patch: ClientUpdate) -> Client:
    client = get_client(db, client_id)
    data = patch.model_dump(exclude_unset=True)
    start = data.get("contract_start", client.contract_start)
    end = data.get("contract_end", client.contract_end)
    if start and end and end < start:
        raise ValidationError("contract_end must not be before contract_start")
    diff = apply_patch(client, data)
    if diff:
        audit.record(db, "client", client.id, "UPDATE", actor, diff)
    commit(db)
    return client


def create_location(db: Session, actor: Identity, payload: LocationCreate) -> Location:
    get_or_404(db, Client, payload.client_id, "Client")
    location = Location(**payload.model_dump())
    db.add(location)
    db.flush()
    audit.record(db, "location", location.id, "CREATE", actor, {"after": snapshot(location, ("client_id", "name", "status"))})
    commit(db)
    logger.info("location_created", location_id=str(location.id), client_id=str(payload.client_id))
    return location


def get_location(db: Session, location_id: uuid.UUID) -> Location:
    return get_or_404(db, Location, location_id, "Location")


def list_locations(db: Session, client_id: Optional[uuid.UUID] = None, status: Optional[str] = None) -> List[Location]:
    query = db.query(Location)
    if client_id:
        query = query.filter(Location.client_id == client_id)
    if status:
        query = query.filter(Location.status == status)
    return query.order_by(Location.name.asc()).all()


def update_location(db: Session, actor: Identity, location_id: uuid.UUID, patch: LocationUpdate) -> Location:
    location = get_location(db, location_id)
    diff = apply_patch(location, patch.model_dump(exclude_unset=True))
    if diff:
        audit.record(db, "location", location.id, "UPDATE", actor, diff)
    commit(db)
    return location
