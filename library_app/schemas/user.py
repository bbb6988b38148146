from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from library_app.models.user import UserRole, UserStatus, AccountStatus


# Base User schema
class UserBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = None


class StudentCreate(UserBase):
    enrollment_number: str
    phone: str
    assigned_faculty_id: UUID


class FacultyCreate(UserBase):
    pass


class ManagerCreate(UserBase):
    pass


# Schema for user response
class UserResponse(BaseModel):
    id: UUID
    name: str
    email: str
    phone: Optional[str] = None
    enrollment_number: Optional[str] = None
    role: UserRole
    status: UserStatus
    account_status: AccountStatus
    penalty_until: Optional[datetime] = None
    active_rentals: int
    total_rentals: int
    assigned_faculty_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StudentSummary(UserResponse):
    """Student row enriched with live rental counts."""
    active_rental_count: int = 0
    total_rental_count: int = 0
    overdue_count: int = 0


class FacultySummary(UserResponse):
    students_count: Optional[int] = None
    pending_requests_count: Optional[int] = None
    books_issued_count: Optional[int] = None


class ManagerAction(BaseModel):
    """Body for manager-only actions. The acting manager is named explicitly."""
    manager_id: Optional[UUID] = None


class AccountStatusUpdate(ManagerAction):
    account_status: AccountStatus
    penalty_until: Optional[datetime] = None
    reason: Optional[str] = Field(None, max_length=500)


class EligibilityResponse(BaseModel):
    can_rent: bool
    reason: Optional[str] = None
