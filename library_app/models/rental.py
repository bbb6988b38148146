"""
Rental model: one book lent to one student for a bounded period.

The user/book snapshot columns are written once at issue time and keep
the historical record readable after the source rows change.
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum

from library_app.core.database import Base


class RentalStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"
    MANUALLY_RETURNED = "MANUALLY_RETURNED"
    AUTO_RETURNED = "AUTO_RETURNED"
    UNDER_INVESTIGATION = "UNDER_INVESTIGATION"
    LOST_PENALTY_APPLIED = "LOST_PENALTY_APPLIED"


# A rental in one of these states still holds its book
OPEN_RENTAL_STATUSES = (RentalStatus.ACTIVE, RentalStatus.OVERDUE)


class CloseMode(enum.Enum):
    """Who is closing a rental, which decides its terminal status."""
    MANAGER_RETURN = "MANAGER_RETURN"
    AUTO_RETURN = "AUTO_RETURN"
    REQUEST_APPROVED_RETURN = "REQUEST_APPROVED_RETURN"


CLOSE_MODE_STATUS = {
    CloseMode.MANAGER_RETURN: RentalStatus.MANUALLY_RETURNED,
    CloseMode.AUTO_RETURN: RentalStatus.AUTO_RETURNED,
    CloseMode.REQUEST_APPROVED_RETURN: RentalStatus.RETURNED,
}


class Rental(Base):
    __tablename__ = "rentals"
    __table_args__ = (
        Index("ix_rentals_user_status", "user_id", "status"),
        Index("ix_rentals_book_status", "book_id", "status"),
        Index("ix_rentals_status_due", "status", "due_date"),
        # One open rental per book
        Index(
            "uq_rentals_single_open_per_book",
            "book_id",
            unique=True,
            postgresql_where=text("status IN ('ACTIVE', 'OVERDUE')"),
            sqlite_where=text("status IN ('ACTIVE', 'OVERDUE')"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    book_id = Column(UUID(as_uuid=True), ForeignKey("books.id"), nullable=False)

    # Lifecycle
    issued_at = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    actual_returned_at = Column(DateTime, nullable=True)
    status = Column(Enum(RentalStatus), nullable=False, default=RentalStatus.ACTIVE)
    renewal_count = Column(Integer, nullable=False, default=0)

    # Snapshots
    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    user_enrollment_number = Column(String(20), nullable=True)
    book_title = Column(String(500), nullable=True)
    book_isbn = Column(String(32), nullable=True)
    book_author = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Rental(book='{self.book_title}', status='{self.status.value}')>"
