"""
API endpoints for accounts: registration, lists and manager actions.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from library_app.core.database import get_db
from library_app.services.user_service import UserService
from library_app.schemas.common import ApiResponse
from library_app.schemas.user import (
    StudentCreate,
    FacultyCreate,
    ManagerCreate,
    UserResponse,
    StudentSummary,
    FacultySummary,
    ManagerAction,
    AccountStatusUpdate,
    EligibilityResponse
)

router = APIRouter(prefix="/users")


def _summary(schema, row: dict):
    """Merge a service row ({"user": User, **counts}) into a summary schema."""
    data = UserResponse.model_validate(row["user"]).model_dump()
    data.update({k: v for k, v in row.items() if k != "user"})
    return schema(**data)


# ========== Registration ==========

@router.post("/students", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def register_student(
    student_data: StudentCreate,
    db: AsyncSession = Depends(get_db)
):
    user = await UserService.register_student(db, student_data)
    return ApiResponse(message="Student registered", data=UserResponse.model_validate(user))


@router.post("/faculties", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def register_faculty(
    faculty_data: FacultyCreate,
    db: AsyncSession = Depends(get_db)
):
    user = await UserService.register_faculty(db, faculty_data)
    return ApiResponse(message="Faculty registered", data=UserResponse.model_validate(user))


@router.post("/manager", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_manager(
    manager_data: ManagerCreate,
    db: AsyncSession = Depends(get_db)
):
    """Create the manager account. Fails if one already exists."""
    user = await UserService.create_manager(db, manager_data)
    return ApiResponse(message="Manager account created", data=UserResponse.model_validate(user))


# ========== Lists ==========

@router.get("/faculties", response_model=ApiResponse)
async def list_faculties(
    include_stats: bool = Query(False, description="Include student and request counts"),
    db: AsyncSession = Depends(get_db)
):
    rows = await UserService.list_faculties(db, include_stats=include_stats)
    return ApiResponse(data=[_summary(FacultySummary, row) for row in rows])


@router.get("/students", response_model=ApiResponse)
async def list_students(
    faculty_id: Optional[UUID] = Query(None, description="Only students assigned to this faculty"),
    include_deleted: bool = Query(False),
    db: AsyncSession = Depends(get_db)
):
    rows = await UserService.list_students(db, faculty_id=faculty_id, include_deleted=include_deleted)
    return ApiResponse(data=[_summary(StudentSummary, row) for row in rows])


@router.get("/{user_id}", response_model=ApiResponse)
async def get_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    user = await UserService.get_user_by_id(db, user_id)
    return ApiResponse(data=UserResponse.model_validate(user))


@router.get("/{user_id}/eligibility", response_model=ApiResponse)
async def get_eligibility(
    user_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """Whether the user may receive a new rental right now."""
    result = await UserService.get_eligibility(db, user_id)
    return ApiResponse(data=EligibilityResponse(can_rent=result.can_rent, reason=result.reason))


# ========== Manager actions ==========

@router.post("/{user_id}/delete", response_model=ApiResponse)
async def delete_user(
    user_id: UUID,
    action: ManagerAction,
    db: AsyncSession = Depends(get_db)
):
    """Soft-delete an account. Manager only."""
    user = await UserService.soft_delete_user(db, action.manager_id, user_id)
    return ApiResponse(message="User deleted successfully", data=UserResponse.model_validate(user))


@router.post("/{user_id}/account-status", response_model=ApiResponse)
async def set_account_status(
    user_id: UUID,
    update_data: AccountStatusUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Block, penalise or reinstate an account. Manager only."""
    user = await UserService.set_account_status(
        db,
        update_data.manager_id,
        user_id,
        update_data.account_status,
        penalty_until=update_data.penalty_until,
        reason=update_data.reason
    )
    return ApiResponse(message="Account status updated", data=UserResponse.model_validate(user))
