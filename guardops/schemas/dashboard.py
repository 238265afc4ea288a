import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total_guards: int
    active_clients: int
    pending_reports: int
    attendance_rate: float


class RecentActivity(BaseModel):
    id: uuid.UUID
    type: str = "incident"
    title: str
    description: str
    status: str
    priority: str
    timestamp: datetime
    time_ago: str
    reporter_name: Optional[str] = None
    location_name: Optional[str] = None


class StaffPerformance(BaseModel):
    id: uuid.UUID
    guard_code: str
    name: str
    position: Optional[str] = None
    location: Optional[str] = None
    attendance: float
    incidents: int
    performance: float


class StaffPerformancePage(BaseModel):
    page: int
    page_size: int
    total: int
    items: List[StaffPerformance]


class UpcomingShiftGuard(BaseModel):
    id: uuid.UUID
    name: str


class UpcomingShift(BaseModel):
    location: str
    shift_name: str
    date: date
    starts_at: datetime
    time: str
    guards: List[UpcomingShiftGuard]


class GuardMapEntry(BaseModel):
    guard_id: uuid.UUID
    guard_name: str
    location_id: uuid.UUID
    location_name: str
    latitude: float
    longitude: float
    status: Literal["incident-reported", "late-check-in", "on-duty"]


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    actor_id: Optional[uuid.UUID] = None
    actor_role: Optional[str] = None
    changes_json: Optional[dict] = None
    timestamp_utc: datetime
    integrity_hash: Optional[str] = None
    verified: bool = False

    class Config:
        from_attributes = True
