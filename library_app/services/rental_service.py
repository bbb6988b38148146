"""
Rental lifecycle: issuing a book to a student and closing the rental.

Every public mutating method is one transaction. The availability check
and the flip to RENTED are a single conditional UPDATE, so two concurrent
rentals of the same book can't both succeed.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, case

from library_app.core.config import settings
from library_app.core.exceptions import (
    LibraryError, BusinessRuleError, ConflictError, ForbiddenError,
    InternalError, NotFoundError, ValidationError
)
from library_app.models.book import Book, BookStatus
from library_app.models.notification import NotificationType
from library_app.models.rental import (
    Rental, RentalStatus, CloseMode, OPEN_RENTAL_STATUSES, CLOSE_MODE_STATUS
)
from library_app.models.user import User, UserRole
from library_app.services.eligibility import check_rental_eligibility
from library_app.services.notification_service import NotificationService
from library_app.services.permissions import require_manager
from library_app.utils.dates import format_short_date, start_of_day, utcnow
from library_app.utils.validators import clean_enrollment_number


logger = logging.getLogger(__name__)


class RentalService:
    """Service for creating and closing rentals."""

    # ========== Building blocks (no commit) ==========

    @staticmethod
    def _validate_rental_days(rental_days: Optional[int]) -> int:
        if rental_days is None:
            return settings.DEFAULT_RENTAL_DAYS
        if rental_days < 1 or rental_days > settings.MAX_RENTAL_DAYS:
            raise ValidationError(f"Rental days must be between 1 and {settings.MAX_RENTAL_DAYS}")
        return rental_days

    @staticmethod
    async def issue_book(
        db: AsyncSession,
        student: User,
        book_id: UUID,
        rental_days: int,
        now: datetime,
        truncate_to_midnight: bool = False,
        unavailable_message: str = "Book is not available",
        notification_prefix: str = "You have been issued"
    ) -> Rental:
        """
        Apply all effects of a new rental inside the caller's transaction.

        Raises ConflictError when the book is no longer AVAILABLE at flip
        time; the caller must roll back.
        """
        issued_at = start_of_day(now) if truncate_to_midnight else now
        due_date = issued_at + timedelta(days=rental_days)
        rental_id = uuid.uuid4()

        flip = await db.execute(
            update(Book)
            .where(Book.id == book_id, Book.rental_status == BookStatus.AVAILABLE)
            .values(
                rental_status=BookStatus.RENTED,
                current_rental_id=rental_id,
                current_holder_id=student.id,
                total_rentals=Book.total_rentals + 1,
                last_rented_at=now
            )
            .execution_options(synchronize_session=False)
        )
        if flip.rowcount != 1:
            raise ConflictError(unavailable_message)

        result = await db.execute(
            select(Book).where(Book.id == book_id).execution_options(populate_existing=True)
        )
        book = result.scalars().one()

        # Guards the cap against a concurrent rental for the same student
        counters = await db.execute(
            update(User)
            .where(User.id == student.id, User.active_rentals < settings.MAX_ACTIVE_RENTALS)
            .values(
                active_rentals=User.active_rentals + 1,
                total_rentals=User.total_rentals + 1,
                last_active_at=now
            )
            .execution_options(synchronize_session=False)
        )
        if counters.rowcount != 1:
            raise BusinessRuleError(
                f"Maximum {settings.MAX_ACTIVE_RENTALS} active rentals allowed. Please return a book first."
            )

        rental = Rental(
            id=rental_id,
            user_id=student.id,
            book_id=book.id,
            issued_at=issued_at,
            due_date=due_date,
            status=RentalStatus.ACTIVE,
            renewal_count=0,
            user_name=student.name,
            user_email=student.email,
            user_enrollment_number=student.enrollment_number,
            book_title=book.title,
            book_isbn=book.isbn,
            book_author=book.author
        )
        db.add(rental)
        await db.flush()

        NotificationService(db).add_notification(
            user_id=student.id,
            notification_type=NotificationType.RENTAL_CONFIRMATION,
            message=f'{notification_prefix} "{book.title}". Due: {format_short_date(due_date)}',
            rental_id=rental.id
        )
        return rental

    @staticmethod
    async def close_open_rental(
        db: AsyncSession,
        rental: Rental,
        mode: CloseMode,
        now: datetime
    ) -> RentalStatus:
        """
        Close ``rental`` inside the caller's transaction and free its book.

        Returns the terminal status written.
        """
        if rental.status not in OPEN_RENTAL_STATUSES:
            raise BusinessRuleError(f"Cannot return book with status: {rental.status.value}")

        terminal_status = CLOSE_MODE_STATUS[mode]
        closed = await db.execute(
            update(Rental)
            .where(Rental.id == rental.id, Rental.status.in_(OPEN_RENTAL_STATUSES))
            .values(status=terminal_status, actual_returned_at=now)
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            raise ConflictError("This rental has already been closed")

        await db.execute(
            update(Book)
            .where(Book.id == rental.book_id)
            .values(
                rental_status=BookStatus.AVAILABLE,
                current_rental_id=None,
                current_holder_id=None
            )
            .execution_options(synchronize_session=False)
        )

        await db.execute(
            update(User)
            .where(User.id == rental.user_id)
            .values(
                active_rentals=case(
                    (User.active_rentals > 0, User.active_rentals - 1),
                    else_=0
                )
            )
            .execution_options(synchronize_session=False)
        )

        NotificationService(db).add_notification(
            user_id=rental.user_id,
            notification_type=NotificationType.RETURN_CONFIRMATION,
            message=f'"{rental.book_title}" has been returned. Thank you!',
            rental_id=rental.id
        )
        return terminal_status

    # ========== Entry points ==========

    @staticmethod
    async def create_rental(
        db: AsyncSession,
        user_id: UUID,
        book_id: UUID,
        rental_days: Optional[int] = None,
        truncate_to_midnight: bool = False
    ) -> dict:
        """Rent ``book_id`` to ``user_id`` after checking eligibility."""
        try:
            days = RentalService._validate_rental_days(rental_days)

            result = await db.execute(
                select(User).where(User.id == user_id).execution_options(populate_existing=True)
            )
            user = result.scalars().first()
            if not user:
                raise NotFoundError("Student not found. Student must create an account first.")

            eligibility = check_rental_eligibility(user)
            if not eligibility.can_rent:
                raise BusinessRuleError(eligibility.reason)

            rental = await RentalService.issue_book(
                db, user, book_id, days, utcnow(),
                truncate_to_midnight=truncate_to_midnight
            )
            await db.commit()
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Create rental error: {str(e)}")
            raise InternalError("Failed to create rental")

        await db.refresh(rental)
        logger.info(f"Rental created: {rental.book_title} -> {rental.user_enrollment_number or rental.user_email}")
        return {
            "rental": rental,
            "student": rental.user_enrollment_number,
            "book": rental.book_title
        }

    @staticmethod
    async def assign_book(
        db: AsyncSession,
        manager_id: Optional[UUID],
        enrollment_number: str,
        book_id: UUID,
        rental_days: Optional[int] = None
    ) -> dict:
        """Manager hands a book to a student identified by enrollment number."""
        try:
            await require_manager(db, manager_id)
            cleaned = clean_enrollment_number(enrollment_number)
            result = await db.execute(
                select(User.id).where(User.enrollment_number == cleaned, User.role == UserRole.STUDENT)
            )
            student_id = result.scalar()
            if not student_id:
                raise NotFoundError("Student not found. Student must create an account first.")
        except LibraryError:
            await db.rollback()
            raise

        return await RentalService.create_rental(db, student_id, book_id, rental_days)

    @staticmethod
    async def close_rental(
        db: AsyncSession,
        rental_id: Optional[UUID],
        mode: CloseMode,
        manager_id: Optional[UUID]
    ) -> Rental:
        """
        Close a rental directly. Only a manager may do this; request-approved
        returns go through the approval pipeline instead.
        """
        try:
            if mode == CloseMode.REQUEST_APPROVED_RETURN:
                raise ForbiddenError("Request returns must go through request approval")
            await require_manager(db, manager_id, forbidden_message="Only the manager can return books")

            if not rental_id:
                raise ValidationError("Rental ID required")

            result = await db.execute(
                select(Rental)
                .where(Rental.id == rental_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            rental = result.scalars().first()
            if not rental:
                raise NotFoundError("Rental not found")

            await RentalService.close_open_rental(db, rental, mode, utcnow())
            await db.commit()
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Return book error: {str(e)}")
            raise InternalError("Failed to return book")

        await db.refresh(rental)
        logger.info(f"Rental {rental.id} closed as {rental.status.value}")
        return rental

    @staticmethod
    async def return_book(db: AsyncSession, manager_id: Optional[UUID], rental_id: Optional[UUID]) -> Rental:
        """Manager marks a book as returned and available."""
        return await RentalService.close_rental(db, rental_id, CloseMode.MANAGER_RETURN, manager_id)

    # ========== Queries ==========

    @staticmethod
    async def list_active_rentals(
        db: AsyncSession,
        student_ids: Optional[List[UUID]] = None
    ) -> List[Rental]:
        """Open rentals, soonest due first, optionally for a set of students."""
        query = select(Rental).where(Rental.status.in_(OPEN_RENTAL_STATUSES))
        if student_ids:
            query = query.where(Rental.user_id.in_(student_ids))
        result = await db.execute(query.order_by(Rental.due_date.asc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_user_rentals(db: AsyncSession, user_id: UUID) -> List[Rental]:
        """Full rental history for one user, newest first."""
        result = await db.execute(
            select(Rental)
            .where(Rental.user_id == user_id)
            .order_by(Rental.issued_at.desc())
        )
        return list(result.scalars().all())
