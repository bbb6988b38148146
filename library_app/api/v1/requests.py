"""
API endpoints for faculty issue/return requests and manager decisions.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID

from library_app.core.database import get_db
from library_app.core.exceptions import NotFoundError
from library_app.services.request_service import BookRequestService
from library_app.schemas.common import ApiResponse
from library_app.schemas.book_request import (
    BookRequestCreate,
    RequestDecision,
    BookRequestResponse
)

router = APIRouter(prefix="/requests")


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    request_data: BookRequestCreate,
    db: AsyncSession = Depends(get_db)
):
    """Faculty files an issue or return request for an assigned student."""
    book_request = await BookRequestService.create_request(
        db,
        student_id=request_data.student_id,
        faculty_id=request_data.faculty_id,
        book_id=request_data.book_id,
        request_type=request_data.type,
        reason=request_data.reason,
        rental_days=request_data.rental_days
    )
    return ApiResponse(
        message="Request submitted successfully",
        data=BookRequestResponse.model_validate(book_request)
    )


@router.get("/pending", response_model=ApiResponse)
async def list_pending_requests(
    faculty_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    requests = await BookRequestService.list_pending_requests(db, faculty_id=faculty_id)
    return ApiResponse(data=[BookRequestResponse.model_validate(r) for r in requests])


@router.get("/faculty/{faculty_id}", response_model=ApiResponse)
async def list_faculty_requests(
    faculty_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    requests = await BookRequestService.list_faculty_requests(db, faculty_id)
    return ApiResponse(data=[BookRequestResponse.model_validate(r) for r in requests])


@router.get("/{request_id}", response_model=ApiResponse)
async def get_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    book_request = await BookRequestService.get_request(db, request_id)
    if not book_request:
        raise NotFoundError("Request not found")
    return ApiResponse(data=BookRequestResponse.model_validate(book_request))


@router.post("/{request_id}/approve", response_model=ApiResponse)
async def approve_request(
    request_id: UUID,
    decision: RequestDecision,
    db: AsyncSession = Depends(get_db)
):
    """Approve a pending request and apply its rental effect."""
    book_request = await BookRequestService.approve_request(
        db, request_id, decision.manager_id, decision.notes
    )
    return ApiResponse(
        message="Request approved successfully",
        data=BookRequestResponse.model_validate(book_request)
    )


@router.post("/{request_id}/reject", response_model=ApiResponse)
async def reject_request(
    request_id: UUID,
    decision: RequestDecision,
    db: AsyncSession = Depends(get_db)
):
    book_request = await BookRequestService.reject_request(
        db, request_id, decision.manager_id, decision.notes
    )
    return ApiResponse(
        message="Request rejected",
        data=BookRequestResponse.model_validate(book_request)
    )
