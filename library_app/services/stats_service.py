"""
Read-only dashboard aggregations.

Nothing here is cached or stored: every figure is counted at query time.
Overdue and due-soon are derived from the due date and the current time,
never from a persisted status transition.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from library_app.core.config import settings
from library_app.core.exceptions import NotFoundError
from library_app.models.book import Book, BookStatus
from library_app.models.book_request import BookRequest, RequestStatus
from library_app.models.rental import Rental, RentalStatus, OPEN_RENTAL_STATUSES
from library_app.models.user import User, UserRole, UserStatus, AccountStatus
from library_app.services.eligibility import check_rental_eligibility
from library_app.utils.dates import day_window, utcnow

logger = logging.getLogger(__name__)


def _overdue_condition(now: datetime):
    return [Rental.status.in_(OPEN_RENTAL_STATUSES), Rental.due_date < now]


class StatsService:
    """Service for dashboard statistics"""

    @staticmethod
    async def _count(db: AsyncSession, column, *conditions) -> int:
        result = await db.execute(select(func.count(column)).where(*conditions))
        return result.scalar() or 0

    @staticmethod
    async def _rentals(db: AsyncSession, *conditions, order_by=None, limit: Optional[int] = None) -> List[Rental]:
        query = select(Rental).where(*conditions)
        if order_by is not None:
            query = query.order_by(order_by)
        if limit:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    # ========== Per-role dashboards ==========

    @staticmethod
    async def get_manager_stats(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or utcnow()
        today_start, today_end = day_window(0, now)
        count = StatsService._count

        return {
            "total_books": await count(db, Book.id),
            "available_books": await count(db, Book.id, Book.rental_status == BookStatus.AVAILABLE),
            "rented_books": await count(db, Book.id, Book.rental_status == BookStatus.RENTED),
            "total_students": await count(db, User.id, User.role == UserRole.STUDENT),
            "active_students": await count(
                db, User.id, User.role == UserRole.STUDENT, User.status == UserStatus.ACTIVE
            ),
            "total_faculties": await count(db, User.id, User.role == UserRole.FACULTY),
            "active_faculties": await count(
                db, User.id, User.role == UserRole.FACULTY, User.status == UserStatus.ACTIVE
            ),
            "pending_requests": await count(db, BookRequest.id, BookRequest.status == RequestStatus.PENDING),
            "today_rentals": await count(
                db, Rental.id, Rental.issued_at >= today_start, Rental.issued_at < today_end
            ),
            "overdue_rentals": await count(db, Rental.id, *_overdue_condition(now)),
        }

    @staticmethod
    async def get_faculty_stats(db: AsyncSession, faculty_id: UUID) -> Dict[str, int]:
        count = StatsService._count
        student_ids = select(User.id).where(
            User.assigned_faculty_id == faculty_id,
            User.status == UserStatus.ACTIVE
        )

        return {
            "assigned_students": await count(
                db, User.id, User.assigned_faculty_id == faculty_id, User.status == UserStatus.ACTIVE
            ),
            "pending_requests": await count(
                db, BookRequest.id,
                BookRequest.faculty_id == faculty_id,
                BookRequest.status == RequestStatus.PENDING
            ),
            "approved_requests": await count(
                db, BookRequest.id,
                BookRequest.faculty_id == faculty_id,
                BookRequest.status == RequestStatus.APPROVED
            ),
            "active_rentals": await count(
                db, Rental.id,
                Rental.user_id.in_(student_ids),
                Rental.status.in_(OPEN_RENTAL_STATUSES)
            ),
        }

    @staticmethod
    async def get_student_stats(
        db: AsyncSession,
        student_id: UUID,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        now = now or utcnow()
        result = await db.execute(
            select(User).where(User.id == student_id).execution_options(populate_existing=True)
        )
        student = result.scalars().first()
        if not student:
            raise NotFoundError("User not found")

        count = StatsService._count
        eligibility = check_rental_eligibility(student, now)
        return {
            "active_rentals": await count(
                db, Rental.id, Rental.user_id == student_id, Rental.status.in_(OPEN_RENTAL_STATUSES)
            ),
            "total_rentals": await count(db, Rental.id, Rental.user_id == student_id),
            "overdue_rentals": await count(
                db, Rental.id, Rental.user_id == student_id, *_overdue_condition(now)
            ),
            "can_rent": eligibility.can_rent,
            "reason": eligibility.reason,
        }

    @staticmethod
    async def get_dashboard_stats(db: AsyncSession, user_id: UUID) -> Dict[str, Any]:
        """Pick the dashboard matching the user's role."""
        result = await db.execute(select(User.role).where(User.id == user_id))
        role = result.scalar()
        if role is None:
            raise NotFoundError("User not found")

        if role == UserRole.MANAGER:
            return await StatsService.get_manager_stats(db)
        if role == UserRole.FACULTY:
            return await StatsService.get_faculty_stats(db, user_id)
        return await StatsService.get_student_stats(db, user_id)

    # ========== Admin overview ==========

    @staticmethod
    async def get_rental_status_counts(db: AsyncSession) -> Dict[str, int]:
        result = await db.execute(
            select(Rental.status, func.count(Rental.id)).group_by(Rental.status)
        )
        counts = {status.value: 0 for status in RentalStatus}
        for status, total in result.all():
            counts[status.value] = total
        return counts

    @staticmethod
    async def get_admin_overview(db: AsyncSession, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts plus the rental lists shown on the manager's overview page."""
        now = now or utcnow()
        today_start, today_end = day_window(0, now)
        soon_start, soon_end = day_window(1, now)
        count = StatsService._count
        rentals = StatsService._rentals

        try:
            today_rentals = await rentals(
                db, Rental.issued_at >= today_start, Rental.issued_at < today_end,
                order_by=Rental.issued_at.desc()
            )
            currently_rented = await rentals(
                db, Rental.status.in_(OPEN_RENTAL_STATUSES),
                order_by=Rental.due_date.asc()
            )
            overdue_rentals = await rentals(
                db, *_overdue_condition(now),
                order_by=Rental.due_date.asc()
            )
            due_soon_rentals = await rentals(
                db,
                Rental.status.in_(OPEN_RENTAL_STATUSES),
                Rental.due_date >= soon_start,
                Rental.due_date < soon_end,
                order_by=Rental.due_date.asc()
            )
            rental_history = await rentals(
                db, order_by=Rental.issued_at.desc(), limit=settings.RENTAL_HISTORY_LIMIT
            )

            stats = {
                "books": {
                    "total": await count(db, Book.id),
                    "available": await count(db, Book.id, Book.rental_status == BookStatus.AVAILABLE),
                    "rented": await count(db, Book.id, Book.rental_status == BookStatus.RENTED),
                    "under_investigation": await count(
                        db, Book.id, Book.rental_status == BookStatus.UNDER_INVESTIGATION
                    ),
                    "lost": await count(db, Book.id, Book.rental_status == BookStatus.LOST),
                },
                "users": {
                    "total": await count(db, User.id),
                    "active": await count(db, User.id, User.status == UserStatus.ACTIVE),
                    "blocked": await count(db, User.id, User.account_status == AccountStatus.BLOCKED),
                    "penalty": await count(db, User.id, User.account_status == AccountStatus.PENALTY),
                    "students": await count(db, User.id, User.role == UserRole.STUDENT),
                    "faculties": await count(db, User.id, User.role == UserRole.FACULTY),
                },
                "rentals": {
                    "today": len(today_rentals),
                    "active": len(currently_rented),
                    "overdue": len(overdue_rentals),
                    "due_soon": len(due_soon_rentals),
                    "total": await count(db, Rental.id),
                    "by_status": await StatsService.get_rental_status_counts(db),
                },
            }
        except Exception as e:
            logger.error(f"Error getting admin overview: {str(e)}")
            raise e

        return {
            "stats": stats,
            "today_rentals": today_rentals,
            "currently_rented": currently_rented,
            "overdue_rentals": overdue_rentals,
            "due_soon_rentals": due_soon_rentals,
            "rental_history": rental_history,
        }

    # ========== Consistency ==========

    @staticmethod
    async def rental_consistency_report(db: AsyncSession) -> Dict[str, Any]:
        """
        Cross-check every RENTED book against the rentals that reference it.

        A consistent book has a current-rental reference and exactly one
        open rental.
        """
        result = await db.execute(
            select(Book).where(Book.rental_status == BookStatus.RENTED).order_by(Book.title)
        )
        rented_books = list(result.scalars().all())

        books = []
        with_current = with_open = mismatched = 0
        for book in rented_books:
            open_rentals = await StatsService._rentals(
                db, Rental.book_id == book.id, Rental.status.in_(OPEN_RENTAL_STATUSES),
                order_by=Rental.issued_at.asc()
            )
            has_current = book.current_rental_id is not None
            if has_current:
                with_current += 1
            if open_rentals:
                with_open += 1
            if not has_current or len(open_rentals) != 1:
                mismatched += 1

            books.append({
                "book_id": book.id,
                "book_title": book.title,
                "has_current_rental": has_current,
                "current_rental_id": book.current_rental_id,
                "open_rentals": [
                    {
                        "rental_id": rental.id,
                        "user": rental.user_enrollment_number or rental.user_email,
                        "issued_at": rental.issued_at,
                        "due_date": rental.due_date,
                        "status": rental.status.value,
                    }
                    for rental in open_rentals
                ],
                "open_rentals_count": len(open_rentals),
            })

        if mismatched:
            logger.warning(f"Rental check found {mismatched} rented books with inconsistent rentals")

        return {
            "total_rented_books": len(rented_books),
            "books": books,
            "summary": {
                "books_with_current_rental": with_current,
                "books_with_open_rentals": with_open,
                "books_with_mismatch": mismatched,
            },
        }
