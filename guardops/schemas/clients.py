import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from .common import PatchModel


ClientStatus = Literal["active", "inactive", "pending"]
LocationStatus = Literal["active", "inactive"]


class ClientCreate(BaseModel):
    name: str = Field(min_length=2, max_length=255)
    address: str = Field(min_length=5, max_length=500)
    contact_person: str = Field(min_length=2)
    contact_phone: str = Field(min_length=5)
    contact_email: EmailStr
    contract_start: date
    contract_end: date
    status: ClientStatus = "active"

    @model_validator(mode="after")
    def contract_dates_ordered(self):
        if self.contract_end < self.contract_start:
            raise ValueError("contract_end must not be before contract_start")
        return self


class ClientUpdate(PatchModel):
    not_nullable = ("name", "status")

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    address: Optional[str] = Field(default=None, min_length=5, max_length=500)
    contact_person: Optional[str] = Field(default=None, min_length=2)
    contact_phone: Optional[str] = Field(default=None, min_length=5)
    contact_email: Optional[EmailStr] = None
    contract_start: Optional[date] = None
    contract_end: Optional[date] = None
    status: Optional[ClientStatus] = None

    class Config:
        extra = "forbid"


class LocationCreate(BaseModel):
    client_id: uuid.UUID
    name: str = Field(min_length=2, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    status: LocationStatus = "active"

    @field_validator("address", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class LocationUpdate(PatchModel):
    not_nullable = ("name", "status")

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    address: Optional[str] = Field(default=None, max_length=500)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    status: Optional[LocationStatus] = None

    class Config:
        extra = "forbid"


class LocationResponse(BaseModel):
    id: uuid.UUID
    client_id: uuid.UUID
    name: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientResponse(BaseModel):
    id: uuid.UUID
    name: str
    address: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contract_start: Optional[date] = None
    contract_end: Optional[date] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientDetailResponse(ClientResponse):
    locations: List[LocationResponse] = []
