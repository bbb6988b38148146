"""
In-app notifications written alongside rental state changes.
"""
from sqlalchemy import Column, DateTime, Enum, Text, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum

from library_app.core.database import Base


class NotificationType(enum.Enum):
    """Types of notifications"""
    RENTAL_CONFIRMATION = "RENTAL_CONFIRMATION"  # Book issued to the student
    RETURN_CONFIRMATION = "RETURN_CONFIRMATION"  # Book taken back
    DUE_REMINDER = "DUE_REMINDER"
    RETURN_REQUEST = "RETURN_REQUEST"
    OVERDUE_WARNING = "OVERDUE_WARNING"
    PENALTY_NOTICE = "PENALTY_NOTICE"
    REQUEST_UPDATE = "REQUEST_UPDATE"  # Issue/return request approved or rejected


class NotificationStatus(enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    READ = "READ"


class Notification(Base):
    """In-app notifications for users"""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_status_created", "user_id", "status", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Recipient
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    rental_id = Column(UUID(as_uuid=True), ForeignKey("rentals.id"), nullable=True)

    # Notification content
    type = Column(Enum(NotificationType), nullable=False)
    message = Column(Text, nullable=False)

    # Delivery
    status = Column(Enum(NotificationStatus), nullable=False, default=NotificationStatus.PENDING)
    sent_at = Column(DateTime, nullable=True)
    read_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<Notification(user_id={self.user_id}, type={self.type.value})>"
