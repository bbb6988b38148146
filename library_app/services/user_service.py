"""
Account management: registration, the single manager account, soft
deletion and business-status changes.

Rental counters on User are never written here.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from library_app.core.config import settings
from library_app.core.exceptions import (
    LibraryError, BusinessRuleError, ConflictError, ForbiddenError,
    InternalError, NotFoundError, ValidationError
)
from library_app.models.book_request import BookRequest, RequestStatus
from library_app.models.rental import Rental, OPEN_RENTAL_STATUSES
from library_app.models.user import User, UserRole, UserStatus, AccountStatus
from library_app.schemas.user import StudentCreate, FacultyCreate, ManagerCreate
from library_app.services.eligibility import EligibilityResult, check_rental_eligibility
from library_app.services.permissions import get_active_user, require_manager
from library_app.utils.dates import utcnow
from library_app.utils.validators import clean_enrollment_number, clean_phone_number


logger = logging.getLogger(__name__)


class UserService:
    """Service for managing user accounts."""

    @staticmethod
    async def _ensure_email_free(db: AsyncSession, email: str) -> None:
        result = await db.execute(select(User.id).where(User.email == email))
        if result.scalar():
            raise ConflictError("Email already registered")

    @staticmethod
    async def _commit_new_user(db: AsyncSession, user: User) -> User:
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error(f"Duplicate user rejected: {e}")
            raise ConflictError("User with this email or enrollment number already exists")
        await db.refresh(user)
        return user

    @staticmethod
    async def register_student(db: AsyncSession, student_data: StudentCreate) -> User:
        """Create a student account assigned to an active faculty member."""
        enrollment_number = clean_enrollment_number(student_data.enrollment_number)
        phone = clean_phone_number(student_data.phone)
        email = student_data.email.lower().strip()

        try:
            faculty = await get_active_user(db, student_data.assigned_faculty_id, UserRole.FACULTY)
            if not faculty:
                raise NotFoundError("Faculty not found or inactive")

            await UserService._ensure_email_free(db, email)
            result = await db.execute(select(User.id).where(User.enrollment_number == enrollment_number))
            if result.scalar():
                raise ConflictError("Enrollment number already registered")
        except LibraryError:
            await db.rollback()
            raise

        user = User(
            name=student_data.name.strip(),
            email=email,
            enrollment_number=enrollment_number,
            phone=phone,
            role=UserRole.STUDENT,
            status=UserStatus.ACTIVE,
            account_status=AccountStatus.ACTIVE,
            assigned_faculty_id=faculty.id,
            active_rentals=0,
            total_rentals=0
        )
        user = await UserService._commit_new_user(db, user)
        logger.info(f"Student registered: {user.enrollment_number} (faculty {faculty.email})")
        return user

    @staticmethod
    async def register_faculty(db: AsyncSession, faculty_data: FacultyCreate) -> User:
        email = faculty_data.email.lower().strip()
        try:
            await UserService._ensure_email_free(db, email)
        except LibraryError:
            await db.rollback()
            raise

        user = User(
            name=faculty_data.name.strip(),
            email=email,
            phone=clean_phone_number(faculty_data.phone) if faculty_data.phone else None,
            role=UserRole.FACULTY,
            status=UserStatus.ACTIVE,
            account_status=AccountStatus.ACTIVE
        )
        user = await UserService._commit_new_user(db, user)
        logger.info(f"Faculty registered: {user.email}")
        return user

    @staticmethod
    async def create_manager(db: AsyncSession, manager_data: ManagerCreate) -> User:
        """
        Create the manager account. Exactly one active manager may exist;
        the check runs in the same transaction as the insert and is backed
        by a partial unique index.
        """
        email = manager_data.email.lower().strip()
        try:
            result = await db.execute(
                select(User.id).where(User.role == UserRole.MANAGER, User.status == UserStatus.ACTIVE)
            )
            if result.scalar():
                raise ConflictError("A manager account already exists")
            await UserService._ensure_email_free(db, email)
        except LibraryError:
            await db.rollback()
            raise

        user = User(
            name=manager_data.name.strip(),
            email=email,
            phone=manager_data.phone,
            role=UserRole.MANAGER,
            status=UserStatus.ACTIVE,
            account_status=AccountStatus.ACTIVE
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError("A manager account already exists")
        await db.refresh(user)
        logger.info(f"Manager account created: {user.email}")
        return user

    @staticmethod
    async def create_default_manager(db: AsyncSession) -> User:
        """Create the configured manager if no active manager exists yet."""
        result = await db.execute(
            select(User).where(User.role == UserRole.MANAGER, User.status == UserStatus.ACTIVE)
        )
        existing_manager = result.scalars().first()
        if existing_manager:
            return existing_manager

        return await UserService.create_manager(db, ManagerCreate(
            name=settings.DEFAULT_MANAGER_NAME,
            email=settings.DEFAULT_MANAGER_EMAIL,
            phone=settings.DEFAULT_MANAGER_PHONE
        ))

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: UUID) -> User:
        result = await db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        user = result.scalars().first()
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def soft_delete_user(db: AsyncSession, manager_id: Optional[UUID], user_id: UUID) -> User:
        """Mark an account deleted. The manager account can't be deleted."""
        try:
            await require_manager(db, manager_id, forbidden_message="Unauthorized")
            user = await UserService.get_user_by_id(db, user_id)
            if user.role == UserRole.MANAGER:
                raise ForbiddenError("Cannot delete manager account")

            user.status = UserStatus.DELETED
            user.deleted_at = utcnow()
            await db.commit()
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Delete user error: {str(e)}")
            raise InternalError("Failed to delete user")

        await db.refresh(user)
        logger.info(f"User soft-deleted: {user.email}")
        return user

    @staticmethod
    async def set_account_status(
        db: AsyncSession,
        manager_id: Optional[UUID],
        user_id: UUID,
        account_status: AccountStatus,
        penalty_until: Optional[datetime] = None,
        reason: Optional[str] = None
    ) -> User:
        """Manager changes a user's business standing (ACTIVE / BLOCKED / PENALTY)."""
        try:
            await require_manager(db, manager_id)
            user = await UserService.get_user_by_id(db, user_id)
            if user.role == UserRole.MANAGER:
                raise ForbiddenError("Cannot change the manager's account status")

            if account_status == AccountStatus.PENALTY:
                if penalty_until is None:
                    raise ValidationError("Penalty end date is required")
                if penalty_until.tzinfo is not None:
                    penalty_until = penalty_until.astimezone(timezone.utc).replace(tzinfo=None)
                if penalty_until <= utcnow():
                    raise BusinessRuleError("Penalty end date must be in the future")
                user.penalty_until = penalty_until
                user.total_penalties = (user.total_penalties or 0) + 1
            else:
                user.penalty_until = None

            user.account_status = account_status
            user.penalty_reason = reason
            await db.commit()
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Account status update error: {str(e)}")
            raise InternalError("Failed to update account status")

        await db.refresh(user)
        logger.info(f"Account status of {user.email} set to {account_status.value}")
        return user

    @staticmethod
    async def get_eligibility(db: AsyncSession, user_id: UUID) -> EligibilityResult:
        user = await UserService.get_user_by_id(db, user_id)
        return check_rental_eligibility(user)

    @staticmethod
    async def list_faculties(db: AsyncSession, include_stats: bool = False) -> List[dict]:
        """Faculty accounts, newest first, optionally with workload counts."""
        result = await db.execute(
            select(User)
            .where(User.role == UserRole.FACULTY)
            .order_by(User.created_at.desc())
        )
        faculties = list(result.scalars().all())

        rows = []
        for faculty in faculties:
            row = {"user": faculty}
            if include_stats:
                students = await db.execute(
                    select(func.count(User.id)).where(
                        User.assigned_faculty_id == faculty.id,
                        User.status == UserStatus.ACTIVE
                    )
                )
                pending = await db.execute(
                    select(func.count(BookRequest.id)).where(
                        BookRequest.faculty_id == faculty.id,
                        BookRequest.status == RequestStatus.PENDING
                    )
                )
                approved = await db.execute(
                    select(func.count(BookRequest.id)).where(
                        BookRequest.faculty_id == faculty.id,
                        BookRequest.status == RequestStatus.APPROVED
                    )
                )
                row["students_count"] = students.scalar() or 0
                row["pending_requests_count"] = pending.scalar() or 0
                row["books_issued_count"] = approved.scalar() or 0
            rows.append(row)
        return rows

    @staticmethod
    async def list_students(
        db: AsyncSession,
        faculty_id: Optional[UUID] = None,
        include_deleted: bool = False
    ) -> List[dict]:
        """Students, newest first, with live rental counts."""
        query = select(User).where(User.role == UserRole.STUDENT)
        if faculty_id:
            query = query.where(User.assigned_faculty_id == faculty_id)
        if not include_deleted:
            query = query.where(User.status == UserStatus.ACTIVE)
        result = await db.execute(query.order_by(User.created_at.desc()))
        students = list(result.scalars().all())

        now = utcnow()
        rows = []
        for student in students:
            active = await db.execute(
                select(func.count(Rental.id)).where(
                    Rental.user_id == student.id,
                    Rental.status.in_(OPEN_RENTAL_STATUSES)
                )
            )
            total = await db.execute(
                select(func.count(Rental.id)).where(Rental.user_id == student.id)
            )
            overdue = await db.execute(
                select(func.count(Rental.id)).where(
                    Rental.user_id == student.id,
                    Rental.status.in_(OPEN_RENTAL_STATUSES),
                    Rental.due_date < now
                )
            )
            rows.append({
                "user": student,
                "active_rental_count": active.scalar() or 0,
                "total_rental_count": total.scalar() or 0,
                "overdue_count": overdue.scalar() or 0,
            })
        return rows
