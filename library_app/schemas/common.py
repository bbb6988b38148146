from pydantic import BaseModel
from typing import Any, Optional


class ApiResponse(BaseModel):
    """Envelope returned by every endpoint."""
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_books: int
    books_per_page: int
    has_next_page: bool
    has_prev_page: bool
