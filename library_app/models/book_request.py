"""
Faculty-submitted issue/return requests awaiting manager approval.

pending -> approved | rejected, each terminal.
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, Text, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum

from library_app.core.database import Base


class RequestType(enum.Enum):
    ISSUE = "issue"
    RETURN = "return"


class RequestStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookRequest(Base):
    __tablename__ = "book_requests"
    __table_args__ = (
        Index("ix_book_requests_status_requested", "status", "requested_at"),
        Index("ix_book_requests_faculty_status", "faculty_id", "status"),
        Index("ix_book_requests_student_status", "student_id", "status"),
        # At most one pending request per (student, book, type)
        Index(
            "uq_book_requests_single_pending",
            "student_id", "book_id", "type",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    faculty_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(UUID(as_uuid=True), ForeignKey("books.id"), nullable=False, index=True)

    type = Column(Enum(RequestType), nullable=False)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING)

    requested_at = Column(DateTime, nullable=False, default=func.now())
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    approved_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    rejected_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    rental_days = Column(Integer, nullable=False, default=14)
    reason = Column(Text, nullable=True)
    manager_notes = Column(Text, nullable=True)

    # Snapshots
    student_name = Column(String(255), nullable=True)
    student_email = Column(String(255), nullable=True)
    student_enrollment_number = Column(String(20), nullable=True)
    faculty_name = Column(String(255), nullable=True)
    faculty_email = Column(String(255), nullable=True)
    book_title = Column(String(500), nullable=True)
    book_isbn = Column(String(32), nullable=True)
    book_author = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<BookRequest(type={self.type.value}, status={self.status.value})>"
