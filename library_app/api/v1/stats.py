"""
Dashboard and reporting endpoints. All figures are computed per request.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from library_app.core.database import get_db
from library_app.models.user import UserRole
from library_app.services.stats_service import StatsService
from library_app.services.user_service import UserService
from library_app.schemas.common import ApiResponse
from library_app.schemas.stats import (
    ManagerDashboardStats,
    FacultyDashboardStats,
    StudentDashboardStats,
    AdminOverview,
    RentalCheckReport
)

router = APIRouter(prefix="/stats")

DASHBOARD_SCHEMAS = {
    UserRole.MANAGER: ManagerDashboardStats,
    UserRole.FACULTY: FacultyDashboardStats,
    UserRole.STUDENT: StudentDashboardStats,
}


@router.get("/dashboard", response_model=ApiResponse)
async def get_dashboard_stats(
    user_id: UUID = Query(..., description="User whose dashboard to build"),
    db: AsyncSession = Depends(get_db)
):
    """Dashboard counts for the user's role."""
    user = await UserService.get_user_by_id(db, user_id)
    stats = await StatsService.get_dashboard_stats(db, user.id)
    return ApiResponse(data=DASHBOARD_SCHEMAS[user.role](**stats))


@router.get("/admin", response_model=ApiResponse)
async def get_admin_overview(db: AsyncSession = Depends(get_db)):
    """Library-wide counts and rental lists for the manager's overview."""
    overview = await StatsService.get_admin_overview(db)
    return ApiResponse(data=AdminOverview.model_validate(overview, from_attributes=True))


@router.get("/rental-check", response_model=ApiResponse)
async def rental_check(db: AsyncSession = Depends(get_db)):
    """Consistency report for every rented book."""
    report = await StatsService.rental_consistency_report(db)
    return ApiResponse(data=RentalCheckReport(**report))
