from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from library_app.models.rental import RentalStatus


class AssignBookRequest(BaseModel):
    manager_id: Optional[UUID] = None
    enrollment_number: str
    book_id: UUID
    rental_days: Optional[int] = Field(None, ge=1, le=30)


class ReturnBookRequest(BaseModel):
    manager_id: Optional[UUID] = None
    rental_id: Optional[UUID] = None


class RentalResponse(BaseModel):
    id: UUID
    user_id: UUID
    book_id: UUID
    issued_at: datetime
    due_date: datetime
    actual_returned_at: Optional[datetime] = None
    status: RentalStatus
    renewal_count: int
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_enrollment_number: Optional[str] = None
    book_title: Optional[str] = None
    book_isbn: Optional[str] = None
    book_author: Optional[str] = None

    class Config:
        from_attributes = True


class RentalConfirmation(BaseModel):
    rental: RentalResponse
    student: Optional[str] = None
    book: str
