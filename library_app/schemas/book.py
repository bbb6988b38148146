"""
Pydantic schemas for Book model.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime
from uuid import UUID

from library_app.models.book import BookStatus
from library_app.schemas.common import Pagination


# Book Base Schema
class BookBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: Optional[str] = Field(None, max_length=32)
    genre: List[str] = Field(default_factory=list)
    publisher: Optional[str] = None
    published_year: Optional[int] = None
    edition: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    physical_id: Optional[str] = None
    cover_image: Optional[str] = None


class BookCreate(BookBase):
    """Schema for creating a new book."""
    pass


class BookUpdate(BaseModel):
    """Descriptive fields only; rental state is never writable here."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    genre: Optional[List[str]] = None
    publisher: Optional[str] = None
    published_year: Optional[int] = None
    edition: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    cover_image: Optional[str] = None


class BookResponse(BookBase):
    """Schema for book response."""
    id: UUID
    rental_status: BookStatus
    current_rental_id: Optional[UUID] = None
    current_holder_id: Optional[UUID] = None
    total_rentals: int
    last_rented_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookListResponse(BaseModel):
    """Schema for a page of books."""
    books: List[BookResponse]
    pagination: Pagination


class BookImportRequest(BaseModel):
    """Rows already parsed from a spreadsheet, keyed by column header."""
    rows: List[Dict[str, Any]]


class BookImportResult(BaseModel):
    imported: int
    skipped: int
    errors: List[str]
