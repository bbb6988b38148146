"""
API endpoints for the rental lifecycle.

Manager assign/return are the only direct rental mutations. Faculty
assignments only file an issue request for the manager to decide.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from library_app.core.database import get_db
from library_app.services.rental_service import RentalService
from library_app.services.request_service import BookRequestService
from library_app.schemas.common import ApiResponse
from library_app.schemas.rental import (
    AssignBookRequest,
    ReturnBookRequest,
    RentalResponse,
    RentalConfirmation
)
from library_app.schemas.book_request import FacultyAssignBookRequest, BookRequestResponse

router = APIRouter()


# ========== Manager Endpoints ==========

@router.post("/manager/assign-book", response_model=ApiResponse)
async def assign_book(
    assign_data: AssignBookRequest,
    db: AsyncSession = Depends(get_db)
):
    """Rent a book to a student by enrollment number."""
    result = await RentalService.assign_book(
        db,
        assign_data.manager_id,
        assign_data.enrollment_number,
        assign_data.book_id,
        assign_data.rental_days
    )
    return ApiResponse(
        message="Book rented successfully",
        data=RentalConfirmation(
            rental=RentalResponse.model_validate(result["rental"]),
            student=result["student"],
            book=result["book"]
        )
    )


@router.post("/manager/return-book", response_model=ApiResponse)
async def return_book(
    return_data: ReturnBookRequest,
    db: AsyncSession = Depends(get_db)
):
    """Mark a rental returned and put the book back on the shelf."""
    rental = await RentalService.return_book(db, return_data.manager_id, return_data.rental_id)
    return ApiResponse(
        message="Book returned successfully",
        data=RentalResponse.model_validate(rental)
    )


# ========== Faculty Endpoints ==========

@router.post("/faculty/assign-book", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def faculty_assign_book(
    assign_data: FacultyAssignBookRequest,
    db: AsyncSession = Depends(get_db)
):
    """Ask the manager to issue a book to one of the faculty's students."""
    book_request = await BookRequestService.assign_book(
        db,
        assign_data.faculty_id,
        assign_data.enrollment_number,
        assign_data.book_id,
        rental_days=assign_data.rental_days,
        reason=assign_data.reason
    )
    return ApiResponse(
        message="Book assignment request sent to manager for approval",
        data=BookRequestResponse.model_validate(book_request)
    )


# ========== Queries ==========

@router.get("/rentals/active", response_model=ApiResponse)
async def list_active_rentals(
    student_ids: Optional[List[UUID]] = Query(None, description="Restrict to these students"),
    db: AsyncSession = Depends(get_db)
):
    rentals = await RentalService.list_active_rentals(db, student_ids=student_ids)
    return ApiResponse(data=[RentalResponse.model_validate(r) for r in rentals])


@router.get("/rentals/user/{user_id}", response_model=ApiResponse)
async def list_user_rentals(
    user_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """Rental history of one user, newest first."""
    rentals = await RentalService.list_user_rentals(db, user_id)
    return ApiResponse(data=[RentalResponse.model_validate(r) for r in rentals])
