"""
Book model for the department catalog.

A book is a single physical item: it is either on the shelf (AVAILABLE),
with exactly one student (RENTED), or pulled from circulation.
Books are never deleted.
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, Text, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum

from library_app.core.database import Base


class BookStatus(enum.Enum):
    AVAILABLE = "AVAILABLE"
    RENTED = "RENTED"
    UNDER_INVESTIGATION = "UNDER_INVESTIGATION"
    LOST = "LOST"


class Book(Base):
    __tablename__ = "books"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    isbn = Column(String(32), unique=True, nullable=True, index=True)
    title = Column(String(500), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    genre = Column(JSON, nullable=False, default=list)
    publisher = Column(String(255), nullable=True)
    published_year = Column(Integer, nullable=True)
    edition = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    physical_id = Column(String(100), unique=True, nullable=True)
    cover_image = Column(String(500), nullable=True)

    # Rental state
    rental_status = Column(Enum(BookStatus), nullable=False, default=BookStatus.AVAILABLE, index=True)
    current_rental_id = Column(UUID(as_uuid=True), nullable=True)  # rentals.id
    current_holder_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    # Analytics
    total_rentals = Column(Integer, nullable=False, default=0)
    last_rented_at = Column(DateTime, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Book(title='{self.title}', status='{self.rental_status.value}')>"
