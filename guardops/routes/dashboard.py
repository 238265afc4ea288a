from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List

from ..db import get_db
from ..auth.security import require_permission
from ..schemas.dashboard import (
    DashboardStats,
    GuardMapEntry,
    RecentActivity,
    StaffPerformancePage,
    UpcomingShift,
)
from ..services import dashboard


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def stats(
    days: Optional[int] = Query(default=None, ge=1, le=3650),
    db: Session = Depends(get_db),
    _=Depends(require_permission("dashboard", "read")),
):
    """Headline counts; `days` limits the attendance rate to recent rows."""
    return dashboard.get_stats(db, days=days)


@router.get("/activities", response_model=List[RecentActivity])
def activities(
    limit: int = Query(default=5, ge=1, le=50),
    db: Session = Depends(get_db),
    _=Depends(require_permission("dashboard", "read")),
):
    return dashboard.recent_activities(db, limit=limit)


@router.get("/performance", response_model=StaffPerformancePage)
def performance(
    page: int = Query(default=1, ge=1),
    db: Session = Depends(get_db),
    _=Depends(require_permission("dashboard", "read")),
):
    return dashboard.staff_performance(db, page=page)


@router.get("/shifts", response_model=List[UpcomingShift])
def shifts(
    limit: int = Query(default=3, ge=1, le=50),
    db: Session = Depends(get_db),
    _=Depends(require_permission("dashboard", "read")),
):
    return dashboard.upcoming_shifts(db, limit=limit)


@router.get("/map", response_model=List[GuardMapEntry])
def guard_map(db: Session = Depends(get_db), _=Depends(require_permission("dashboard", "read"))):
    return dashboard.guard_locations(db)
