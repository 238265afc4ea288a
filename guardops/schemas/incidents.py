import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .common import PatchModel


IncidentStatus = Literal["open", "investigating", "resolved", "closed"]
IncidentPriority = Literal["low", "medium", "high", "critical"]
CategoryPriority = Literal["low", "medium", "high"]


class IncidentCategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    priority: CategoryPriority = "medium"


class IncidentCategoryUpdate(PatchModel):
    not_nullable = ("name", "priority")

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    priority: Optional[CategoryPriority] = None

    class Config:
        extra = "forbid"


class IncidentCategoryResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    priority: str

    class Config:
        from_attributes = True


class IncidentCreate(BaseModel):
    title: str = Field(min_length=3, max_length=255)
    description: str = Field(min_length=10)
    location_id: uuid.UUID
    category_id: uuid.UUID
    date: Optional[datetime] = None
    priority: Optional[IncidentPriority] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class IncidentUpdate(PatchModel):
    not_nullable = ("title", "description", "category_id", "status", "priority")

    title: Optional[str] = Field(default=None, min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, min_length=10)
    category_id: Optional[uuid.UUID] = None
    status: Optional[IncidentStatus] = None
    priority: Optional[IncidentPriority] = None
    override: bool = False

    class Config:
        extra = "forbid"


class IncidentPhotoResponse(BaseModel):
    id: uuid.UUID
    photo_url: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None

    class Config:
        from_attributes = True


class IncidentReporterSummary(BaseModel):
    id: uuid.UUID
    username: str
    name: str


class IncidentLocationSummary(BaseModel):
    id: uuid.UUID
    name: str
    address: Optional[str] = None


class IncidentCategorySummary(BaseModel):
    id: uuid.UUID
    name: str
    priority: str


class IncidentResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    date: datetime
    status: str
    priority: str
    reported_by: uuid.UUID
    location_id: uuid.UUID
    category_id: uuid.UUID
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    reporter: Optional[IncidentReporterSummary] = None
    location: Optional[IncidentLocationSummary] = None
    category: Optional[IncidentCategorySummary] = None
    photos: List[IncidentPhotoResponse] = []
