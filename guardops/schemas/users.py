import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from .common import PatchModel


RoleName = Literal["admin", "chief_of_staff", "team_leader", "guard"]


class _OptionalTextMixin(BaseModel):
    @field_validator("first_name", "last_name", "email", "phone", mode="before", check_fields=False)
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class UserCreate(_OptionalTextMixin):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)
    first_name: Optional[str] = Field(default=None, min_length=2)
    last_name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: RoleName
    active: bool = True

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("username must be at least 3 characters")
        return v


class UserUpdate(PatchModel, _OptionalTextMixin):
    not_nullable = ("password", "role", "active")

    password: Optional[str] = Field(default=None, min_length=6)
    first_name: Optional[str] = Field(default=None, min_length=2)
    last_name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[RoleName] = None
    active: Optional[bool] = None

    class Config:
        # Username is immutable once created
        extra = "forbid"


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = Field(default=None, validation_alias=AliasChoices("role_name", "role"))
    role_id: Optional[uuid.UUID] = None
    active: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True
