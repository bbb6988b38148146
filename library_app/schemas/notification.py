"""
Pydantic schemas for in-app notifications.
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from library_app.models.notification import NotificationType, NotificationStatus


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    rental_id: Optional[UUID] = None
    type: NotificationType
    message: str
    status: NotificationStatus
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int
