"""
Notification API endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from library_app.core.database import get_db
from library_app.core.exceptions import NotFoundError
from library_app.services.notification_service import NotificationService
from library_app.schemas.common import ApiResponse
from library_app.schemas.notification import NotificationResponse, NotificationListResponse

router = APIRouter(prefix="/notifications")


@router.get("/{user_id}", response_model=ApiResponse)
async def get_notifications(
    user_id: UUID,
    include_read: bool = Query(True, description="Include read notifications"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db)
):
    """Get notifications for a user"""
    service = NotificationService(db)
    notifications, total, unread_count = await service.get_user_notifications(
        user_id=user_id,
        include_read=include_read,
        limit=limit,
        offset=offset
    )

    return ApiResponse(data=NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread_count
    ))


@router.post("/{notification_id}/read", response_model=ApiResponse)
async def mark_notification_read(
    notification_id: UUID,
    user_id: UUID = Query(..., description="Owner of the notification"),
    db: AsyncSession = Depends(get_db)
):
    """Mark a notification as read"""
    service = NotificationService(db)
    success = await service.mark_as_read(notification_id, user_id)
    if not success:
        raise NotFoundError("Notification not found")
    return ApiResponse(message="Notification marked as read")
