import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from .common import PatchModel


GuardStatus = Literal["active", "inactive", "on-leave"]

GUARD_CODE_PATTERN = r"^G-\d{4}-\d{3}$"


class GuardUserInput(BaseModel):
    """Login account created together with a guard profile."""

    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=2)
    last_name: str = Field(min_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None

    @field_validator("email", "phone", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class GuardCreate(BaseModel):
    user: Optional[GuardUserInput] = None
    user_id: Optional[uuid.UUID] = None
    guard_code: Optional[str] = Field(default=None, pattern=GUARD_CODE_PATTERN)
    national_id: str = Field(min_length=3, max_length=50)
    dob: Optional[date] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    join_date: Optional[date] = None
    position: str = Field(default="Guard", min_length=1)
    status: GuardStatus = "active"

    @model_validator(mode="after")
    def user_or_user_id(self):
        if (self.user is None) == (self.user_id is None):
            raise ValueError("provide exactly one of 'user' or 'user_id'")
        return self


class GuardUpdate(PatchModel):
    not_nullable = ("status", "performance")

    national_id: Optional[str] = Field(default=None, min_length=3, max_length=50)
    dob: Optional[date] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    join_date: Optional[date] = None
    position: Optional[str] = Field(default=None, min_length=1)
    status: Optional[GuardStatus] = None
    performance: Optional[float] = Field(default=None, ge=0, le=100)

    class Config:
        extra = "forbid"


class GuardUserSummary(BaseModel):
    id: uuid.UUID
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class GuardResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    guard_code: str
    national_id: Optional[str] = None
    dob: Optional[date] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    join_date: Optional[date] = None
    position: Optional[str] = None
    status: str
    performance: float = 0
    created_at: Optional[datetime] = None
    user: Optional[GuardUserSummary] = None

    class Config:
        from_attributes = True
