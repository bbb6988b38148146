"""
Schemas for dashboard statistics. Everything here is computed on demand.
"""

from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime
from uuid import UUID

from library_app.schemas.rental import RentalResponse


class ManagerDashboardStats(BaseModel):
    total_books: int
    available_books: int
    rented_books: int
    total_students: int
    active_students: int
    total_faculties: int
    active_faculties: int
    pending_requests: int
    today_rentals: int
    overdue_rentals: int


class FacultyDashboardStats(BaseModel):
    assigned_students: int
    pending_requests: int
    approved_requests: int
    active_rentals: int


class StudentDashboardStats(BaseModel):
    active_rentals: int
    total_rentals: int
    overdue_rentals: int
    can_rent: bool
    reason: Optional[str] = None


class BookCounts(BaseModel):
    total: int
    available: int
    rented: int
    under_investigation: int
    lost: int


class UserCounts(BaseModel):
    total: int
    active: int
    blocked: int
    penalty: int
    students: int
    faculties: int


class RentalCounts(BaseModel):
    today: int
    active: int
    overdue: int
    due_soon: int
    total: int
    by_status: Dict[str, int] = {}


class AdminStatsCounts(BaseModel):
    books: BookCounts
    users: UserCounts
    rentals: RentalCounts


class AdminOverview(BaseModel):
    stats: AdminStatsCounts
    today_rentals: List[RentalResponse]
    currently_rented: List[RentalResponse]
    overdue_rentals: List[RentalResponse]
    due_soon_rentals: List[RentalResponse]
    rental_history: List[RentalResponse]


class OpenRentalRef(BaseModel):
    rental_id: UUID
    user: Optional[str] = None
    issued_at: datetime
    due_date: datetime
    status: str


class RentedBookCheck(BaseModel):
    book_id: UUID
    book_title: str
    has_current_rental: bool
    current_rental_id: Optional[UUID] = None
    open_rentals: List[OpenRentalRef]
    open_rentals_count: int


class RentalCheckSummary(BaseModel):
    books_with_current_rental: int
    books_with_open_rentals: int
    books_with_mismatch: int


class RentalCheckReport(BaseModel):
    total_rented_books: int
    books: List[RentedBookCheck]
    summary: RentalCheckSummary
