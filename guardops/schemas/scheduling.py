import uuid
import datetime as dt
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .common import PatchModel


ScheduleStatus = Literal["scheduled", "completed", "missed", "cancelled"]
AttendanceStatus = Literal["on-time", "late", "absent"]


# Shifts

class ShiftCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    start_time: dt.time
    end_time: dt.time

    @model_validator(mode="after")
    def non_empty_window(self):
        if self.start_time == self.end_time:
            raise ValueError("start_time and end_time must differ")
        return self


class ShiftUpdate(PatchModel):
    not_nullable = ("name", "start_time", "end_time")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None

    class Config:
        extra = "forbid"


class ShiftResponse(BaseModel):
    id: uuid.UUID
    name: str
    start_time: dt.time
    end_time: dt.time
    overnight: bool = False

    class Config:
        from_attributes = True


# Schedules

class ScheduleCreate(BaseModel):
    guard_id: uuid.UUID
    location_id: uuid.UUID
    shift_id: uuid.UUID
    date: dt.date


class ScheduleUpdate(PatchModel):
    not_nullable = ("guard_id", "location_id", "shift_id", "date", "status")

    guard_id: Optional[uuid.UUID] = None
    location_id: Optional[uuid.UUID] = None
    shift_id: Optional[uuid.UUID] = None
    date: Optional[dt.date] = None
    status: Optional[ScheduleStatus] = None

    class Config:
        extra = "forbid"


class ScheduleGuardSummary(BaseModel):
    id: uuid.UUID
    guard_code: str
    name: str
    position: Optional[str] = None


class ScheduleLocationSummary(BaseModel):
    id: uuid.UUID
    name: str
    address: Optional[str] = None


class ScheduleShiftSummary(BaseModel):
    id: uuid.UUID
    name: str
    start_time: dt.time
    end_time: dt.time


class ScheduleResponse(BaseModel):
    id: uuid.UUID
    guard_id: uuid.UUID
    location_id: uuid.UUID
    shift_id: uuid.UUID
    date: dt.date
    status: str
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[dt.datetime] = None
    guard: Optional[ScheduleGuardSummary] = None
    location: Optional[ScheduleLocationSummary] = None
    shift: Optional[ScheduleShiftSummary] = None


# Attendance

class AttendanceCreate(BaseModel):
    schedule_id: Optional[uuid.UUID] = None
    guard_id: Optional[uuid.UUID] = None
    check_in_time: Optional[dt.datetime] = None
    check_out_time: Optional[dt.datetime] = None
    status: Optional[AttendanceStatus] = None
    comments: Optional[str] = None
    location_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    location_longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def schedule_or_guard(self):
        if self.schedule_id is None and self.guard_id is None:
            raise ValueError("provide schedule_id or guard_id")
        return self


class AttendanceUpdate(BaseModel):
    check_in_time: Optional[dt.datetime] = None
    check_out_time: Optional[dt.datetime] = None
    status: Optional[AttendanceStatus] = None
    comments: Optional[str] = None

    class Config:
        extra = "forbid"


class CheckInRequest(BaseModel):
    schedule_id: uuid.UUID
    check_in_time: Optional[dt.datetime] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    comments: Optional[str] = None


class CheckOutRequest(BaseModel):
    check_out_time: Optional[dt.datetime] = None
    comments: Optional[str] = None


class AbsentRequest(BaseModel):
    schedule_id: uuid.UUID
    comments: Optional[str] = None


class AttendanceResponse(BaseModel):
    id: uuid.UUID
    guard_id: uuid.UUID
    schedule_id: Optional[uuid.UUID] = None
    check_in_time: Optional[dt.datetime] = None
    check_out_time: Optional[dt.datetime] = None
    status: Optional[str] = None
    comments: Optional[str] = None
    location_latitude: Optional[float] = None
    location_longitude: Optional[float] = None
    within_geofence: Optional[bool] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
