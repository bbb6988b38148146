from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
import uuid
import enum

from library_app.core.database import Base


class UserRole(enum.Enum):
    MANAGER = "manager"
    FACULTY = "faculty"
    STUDENT = "student"


class UserStatus(enum.Enum):
    """Account lifecycle flag."""
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class AccountStatus(enum.Enum):
    """Business standing used by the rental eligibility rules."""
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    PENALTY = "PENALTY"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        # At most one active manager
        Index(
            "uq_users_single_active_manager",
            "role",
            unique=True,
            postgresql_where=text("role = 'MANAGER' AND status = 'ACTIVE'"),
            sqlite_where=text("role = 'MANAGER' AND status = 'ACTIVE'"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    enrollment_number = Column(String(20), unique=True, nullable=True)  # Students only
    phone = Column(String(20), nullable=True)
    role = Column(Enum(UserRole), nullable=False, index=True)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)

    # Rental standing
    account_status = Column(Enum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE)
    penalty_until = Column(DateTime, nullable=True)
    penalty_reason = Column(String(500), nullable=True)
    total_penalties = Column(Integer, nullable=False, default=0)

    # Counters, mutated only by the rental lifecycle
    active_rentals = Column(Integer, nullable=False, default=0)
    total_rentals = Column(Integer, nullable=False, default=0)

    assigned_faculty_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    last_active_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role.value}')>"
