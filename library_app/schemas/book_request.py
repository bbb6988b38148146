from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from library_app.models.book_request import RequestType, RequestStatus


class BookRequestCreate(BaseModel):
    student_id: Optional[UUID] = None
    faculty_id: Optional[UUID] = None
    book_id: Optional[UUID] = None
    type: Optional[RequestType] = None
    reason: Optional[str] = Field(None, max_length=1000)
    rental_days: Optional[int] = Field(None, ge=1, le=30)


class RequestDecision(BaseModel):
    manager_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=1000)


class BookRequestResponse(BaseModel):
    id: UUID
    student_id: UUID
    faculty_id: UUID
    book_id: UUID
    type: RequestType
    status: RequestStatus
    requested_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    rejected_by: Optional[UUID] = None
    rental_days: int
    reason: Optional[str] = None
    manager_notes: Optional[str] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    student_enrollment_number: Optional[str] = None
    faculty_name: Optional[str] = None
    faculty_email: Optional[str] = None
    book_title: Optional[str] = None
    book_isbn: Optional[str] = None
    book_author: Optional[str] = None

    class Config:
        from_attributes = True


class FacultyAssignBookRequest(BaseModel):
    faculty_id: Optional[UUID] = None
    enrollment_number: str
    book_id: UUID
    rental_days: Optional[int] = Field(None, ge=1, le=30)
    reason: Optional[str] = Field(None, max_length=1000)
