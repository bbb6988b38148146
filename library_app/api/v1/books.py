"""
API endpoints for the book catalog.

Rental state on a book is read-only here; it changes only through the
rental and request endpoints.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from library_app.core.database import get_db
from library_app.services.book_service import BookService
from library_app.schemas.common import ApiResponse
from library_app.schemas.book import (
    BookCreate,
    BookUpdate,
    BookResponse,
    BookListResponse,
    BookImportRequest,
    BookImportResult
)

router = APIRouter(prefix="/books")


@router.get("", response_model=ApiResponse)
async def search_books(
    search: Optional[str] = Query(None, description="Match title, author or ISBN"),
    genre: Optional[str] = Query(None, description='Genre filter, "all" for every genre'),
    available: Optional[bool] = Query(None, description="Only books on the shelf"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Search the catalog."""
    result = await BookService.search_books(
        db, search=search, genre=genre, available=available, page=page, limit=limit
    )
    return ApiResponse(data=BookListResponse(
        books=[BookResponse.model_validate(b) for b in result["books"]],
        pagination=result["pagination"]
    ))


@router.get("/genres", response_model=ApiResponse)
async def get_genres(db: AsyncSession = Depends(get_db)):
    genres = await BookService.get_genres(db)
    return ApiResponse(data=genres)


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    book_data: BookCreate,
    db: AsyncSession = Depends(get_db)
):
    book = await BookService.create_book(db, book_data)
    return ApiResponse(message="Book added", data=BookResponse.model_validate(book))


@router.post("/import", response_model=ApiResponse)
async def import_books(
    import_data: BookImportRequest,
    db: AsyncSession = Depends(get_db)
):
    """Import rows already parsed from a spreadsheet."""
    result = await BookService.import_books(db, import_data.rows)
    return ApiResponse(
        message=f"Imported {result['imported']} books",
        data=BookImportResult(**result)
    )


@router.get("/{book_id}", response_model=ApiResponse)
async def get_book(
    book_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    book = await BookService.get_book_by_id(db, book_id)
    return ApiResponse(data=BookResponse.model_validate(book))


@router.put("/{book_id}", response_model=ApiResponse)
async def update_book(
    book_id: UUID,
    book_data: BookUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Update descriptive fields of a book."""
    book = await BookService.update_book(db, book_id, book_data)
    return ApiResponse(message="Book updated", data=BookResponse.model_validate(book))
