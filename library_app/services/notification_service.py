"""
Notification service for in-app notifications.

``add_notification`` only stages a row on the session so that it commits
(or rolls back) together with the rental change that produced it.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, and_
from typing import Optional, List
from uuid import UUID

from library_app.models.notification import Notification, NotificationType, NotificationStatus
from library_app.utils.dates import utcnow


class NotificationService:
    """Service for managing notifications"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def add_notification(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        message: str,
        rental_id: Optional[UUID] = None
    ) -> Notification:
        """Stage a notification in the caller's transaction"""
        notification = Notification(
            user_id=user_id,
            rental_id=rental_id,
            type=notification_type,
            message=message,
            status=NotificationStatus.PENDING,
            created_at=utcnow()
        )
        self.db.add(notification)
        return notification

    async def get_user_notifications(
        self,
        user_id: UUID,
        include_read: bool = True,
        limit: int = 50,
        offset: int = 0
    ) -> tuple[List[Notification], int, int]:
        """Get notifications for a user, newest first"""
        conditions = [Notification.user_id == user_id]
        if not include_read:
            conditions.append(Notification.status != NotificationStatus.READ)

        result = await self.db.execute(
            select(Notification)
            .where(and_(*conditions))
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        notifications = list(result.scalars().all())

        count_result = await self.db.execute(
            select(func.count(Notification.id)).where(and_(*conditions))
        )
        total = count_result.scalar() or 0

        unread_result = await self.db.execute(
            select(func.count(Notification.id))
            .where(
                Notification.user_id == user_id,
                Notification.status != NotificationStatus.READ
            )
        )
        unread_count = unread_result.scalar() or 0

        return notifications, total, unread_count

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> bool:
        """Mark a notification as read"""
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
            .values(status=NotificationStatus.READ, read_at=utcnow())
        )
        await self.db.commit()
        return result.rowcount > 0
