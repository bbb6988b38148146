"""
Faculty request -> manager decision workflow.

A request moves pending -> approved or pending -> rejected exactly once.
Approval applies the same rental effects as a manager action, inside the
same transaction that marks the request approved. Mail goes out only
after commit and never affects the outcome.
"""

import logging
from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from library_app.core.config import settings
from library_app.core.exceptions import (
    LibraryError, BusinessRuleError, ConflictError, ForbiddenError, InternalError,
    NotFoundError, ValidationError
)
from library_app.models.book import Book, BookStatus
from library_app.models.book_request import BookRequest, RequestType, RequestStatus
from library_app.models.notification import NotificationType
from library_app.models.rental import Rental, CloseMode, OPEN_RENTAL_STATUSES
from library_app.models.user import User, UserRole, UserStatus
from library_app.services.eligibility import check_rental_eligibility
from library_app.services.email_service import EmailService
from library_app.services.notification_service import NotificationService
from library_app.services.permissions import get_active_user, require_manager
from library_app.services.rental_service import RentalService
from library_app.utils.dates import utcnow
from library_app.utils.validators import clean_enrollment_number


logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "Request not found or already processed"


def _request_summary(book_request: BookRequest) -> dict:
    """Plain copy of a request's snapshot fields for mail templates."""
    return {
        "type": book_request.type.value,
        "reason": book_request.reason,
        "manager_notes": book_request.manager_notes,
        "student_name": book_request.student_name,
        "student_enrollment_number": book_request.student_enrollment_number,
        "faculty_name": book_request.faculty_name,
        "book_title": book_request.book_title,
        "book_author": book_request.book_author,
        "requested_at": book_request.requested_at.strftime("%Y-%m-%d %H:%M") if book_request.requested_at else "",
    }


class BookRequestService:
    """Service for faculty issue/return requests and their approval."""

    @staticmethod
    async def _find_pending(
        db: AsyncSession,
        student_id: UUID,
        book_id: UUID,
        request_type: RequestType
    ) -> Optional[BookRequest]:
        result = await db.execute(
            select(BookRequest).where(
                BookRequest.student_id == student_id,
                BookRequest.book_id == book_id,
                BookRequest.type == request_type,
                BookRequest.status == RequestStatus.PENDING
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _lock_pending_request(db: AsyncSession, request_id: UUID) -> BookRequest:
        result = await db.execute(
            select(BookRequest)
            .where(BookRequest.id == request_id, BookRequest.status == RequestStatus.PENDING)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        book_request = result.scalars().first()
        if not book_request:
            raise NotFoundError(ALREADY_PROCESSED)
        return book_request

    @staticmethod
    async def _mark_decided(db: AsyncSession, book_request: BookRequest, values: dict) -> None:
        """Terminal transition, conditional on the request still being pending."""
        result = await db.execute(
            update(BookRequest)
            .where(BookRequest.id == book_request.id, BookRequest.status == RequestStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError(ALREADY_PROCESSED)

    @staticmethod
    async def _notify_manager(db: AsyncSession, book_request: BookRequest) -> None:
        try:
            result = await db.execute(
                select(User.email).where(User.role == UserRole.MANAGER, User.status == UserStatus.ACTIVE)
            )
            manager_email = result.scalar()
            if manager_email:
                await EmailService().send_new_request_email(manager_email, _request_summary(book_request))
        except Exception as e:
            logger.error(f"Failed to notify manager about request {book_request.id}: {e}")

    @staticmethod
    async def _notify_faculty(book_request: BookRequest, approved: bool) -> None:
        if not book_request.faculty_email:
            return
        try:
            email_service = EmailService()
            summary = _request_summary(book_request)
            if approved:
                await email_service.send_request_approved_email(book_request.faculty_email, summary)
            else:
                await email_service.send_request_rejected_email(book_request.faculty_email, summary)
        except Exception as e:
            logger.error(f"Failed to notify faculty about request {book_request.id}: {e}")

    @staticmethod
    def _add_decision_notification(db: AsyncSession, book_request: BookRequest, approved: bool) -> None:
        """In-app note to the requesting faculty, committed with the decision."""
        outcome = "approved" if approved else "rejected"
        message = (
            f'Your {book_request.type.value} request for "{book_request.book_title}" '
            f"({book_request.student_enrollment_number or book_request.student_name}) was {outcome}."
        )
        NotificationService(db).add_notification(
            user_id=book_request.faculty_id,
            notification_type=NotificationType.REQUEST_UPDATE,
            message=message
        )

    # ========== Create ==========

    @staticmethod
    async def create_request(
        db: AsyncSession,
        student_id: Optional[UUID],
        faculty_id: Optional[UUID],
        book_id: Optional[UUID],
        request_type: Optional[RequestType],
        reason: Optional[str] = None,
        rental_days: Optional[int] = None
    ) -> BookRequest:
        """Faculty files an issue or return request for one of their students."""
        try:
            if not student_id or not faculty_id or not book_id or not request_type:
                raise ValidationError("Student, faculty, book, and type are required")
            if not isinstance(request_type, RequestType):
                try:
                    request_type = RequestType(request_type)
                except ValueError:
                    raise ValidationError('Type must be either "issue" or "return"')
            if rental_days is not None and not 1 <= rental_days <= settings.MAX_RENTAL_DAYS:
                raise ValidationError(f"Rental days must be between 1 and {settings.MAX_RENTAL_DAYS}")

            student = await get_active_user(db, student_id, UserRole.STUDENT)
            if not student:
                raise NotFoundError("Student not found or inactive")
            faculty = await get_active_user(db, faculty_id, UserRole.FACULTY)
            if not faculty:
                raise NotFoundError("Faculty not found or inactive")
            result = await db.execute(
                select(Book).where(Book.id == book_id).execution_options(populate_existing=True)
            )
            book = result.scalars().first()
            if not book:
                raise NotFoundError("Book not found")

            if student.assigned_faculty_id != faculty.id:
                raise ForbiddenError("Student is not assigned to this faculty")

            if request_type == RequestType.ISSUE:
                eligibility = check_rental_eligibility(student)
                if not eligibility.can_rent:
                    raise BusinessRuleError(eligibility.reason)
                if book.rental_status != BookStatus.AVAILABLE:
                    raise BusinessRuleError("Book is not available for rental")
                if await BookRequestService._find_pending(db, student.id, book.id, RequestType.ISSUE):
                    raise BusinessRuleError("There is already a pending issue request for this book")
            else:
                if book.current_holder_id != student.id:
                    raise BusinessRuleError("This book is not currently issued to this student")
                if await BookRequestService._find_pending(db, student.id, book.id, RequestType.RETURN):
                    raise BusinessRuleError("There is already a pending return request for this book")

            book_request = BookRequest(
                student_id=student.id,
                faculty_id=faculty.id,
                book_id=book.id,
                type=request_type,
                status=RequestStatus.PENDING,
                requested_at=utcnow(),
                rental_days=rental_days or settings.REQUEST_RENTAL_DAYS,
                reason=reason,
                student_name=student.name,
                student_email=student.email,
                student_enrollment_number=student.enrollment_number,
                faculty_name=faculty.name,
                faculty_email=faculty.email,
                book_title=book.title,
                book_isbn=book.isbn,
                book_author=book.author
            )
            db.add(book_request)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"There is already a pending {request_type.value} request for this book")
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Create request error: {str(e)}")
            raise InternalError("Failed to create request")

        await db.refresh(book_request)
        logger.info(
            f"Book {book_request.type.value} request created: {book_request.book_title} "
            f"for {book_request.student_enrollment_number} by {book_request.faculty_email}"
        )

        await BookRequestService._notify_manager(db, book_request)
        return book_request

    @staticmethod
    async def assign_book(
        db: AsyncSession,
        faculty_id: Optional[UUID],
        enrollment_number: str,
        book_id: UUID,
        rental_days: Optional[int] = None,
        reason: Optional[str] = None
    ) -> BookRequest:
        """Faculty asks for a book to be issued to a student identified by enrollment number."""
        try:
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

        return await BookRequestService.create_request(
            db, student_id, faculty_id, book_id, RequestType.ISSUE,
            reason=reason, rental_days=rental_days
        )

    # ========== Decide ==========

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        request_id: UUID,
        manager_id: Optional[UUID],
        notes: Optional[str] = None
    ) -> BookRequest:
        """Approve a pending request and apply its rental effect atomically."""
        try:
            manager = await require_manager(db, manager_id)
            book_request = await BookRequestService._lock_pending_request(db, request_id)

            student = await db.get(User, book_request.student_id, populate_existing=True)
            book = await db.get(Book, book_request.book_id)
            faculty = await db.get(User, book_request.faculty_id)
            if not student or not book or not faculty:
                raise NotFoundError("Related entities not found")

            now = utcnow()
            if book_request.type == RequestType.ISSUE:
                # Student state may have changed while the request was pending
                eligibility = check_rental_eligibility(student, now)
                if not eligibility.can_rent:
                    raise BusinessRuleError(eligibility.reason)
                await RentalService.issue_book(
                    db, student, book.id, book_request.rental_days, now,
                    unavailable_message="Book is no longer available",
                    notification_prefix="Your faculty request was approved. You have been issued"
                )
            else:
                result = await db.execute(
                    select(Rental)
                    .where(
                        Rental.user_id == student.id,
                        Rental.book_id == book.id,
                        Rental.status.in_(OPEN_RENTAL_STATUSES)
                    )
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
                rental = result.scalars().first()
                if not rental:
                    raise NotFoundError("No active rental found")
                await RentalService.close_open_rental(db, rental, CloseMode.REQUEST_APPROVED_RETURN, now)

            await BookRequestService._mark_decided(db, book_request, {
                "status": RequestStatus.APPROVED,
                "approved_at": now,
                "approved_by": manager.id,
                "manager_notes": notes,
            })
            BookRequestService._add_decision_notification(db, book_request, approved=True)
            await db.commit()
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Approve request error: {str(e)}")
            raise InternalError("Failed to approve request")

        await db.refresh(book_request)
        logger.info(f"Request {book_request.id} ({book_request.type.value}) approved by {manager_id}")

        await BookRequestService._notify_faculty(book_request, approved=True)
        return book_request

    @staticmethod
    async def reject_request(
        db: AsyncSession,
        request_id: UUID,
        manager_id: Optional[UUID],
        notes: Optional[str] = None
    ) -> BookRequest:
        """Reject a pending request. No rental or book state changes."""
        try:
            manager = await require_manager(db, manager_id)
            book_request = await BookRequestService._lock_pending_request(db, request_id)

            await BookRequestService._mark_decided(db, book_request, {
                "status": RequestStatus.REJECTED,
                "rejected_at": utcnow(),
                "rejected_by": manager.id,
                "manager_notes": notes,
            })
            BookRequestService._add_decision_notification(db, book_request, approved=False)
            await db.commit()
        except LibraryError:
            await db.rollback()
            raise
        except Exception as e:
            await db.rollback()
            logger.error(f"Reject request error: {str(e)}")
            raise InternalError("Failed to reject request")

        await db.refresh(book_request)
        logger.info(f"Request {book_request.id} ({book_request.type.value}) rejected by {manager_id}")

        await BookRequestService._notify_faculty(book_request, approved=False)
        return book_request

    # ========== Queries ==========

    @staticmethod
    async def get_request(db: AsyncSession, request_id: UUID) -> Optional[BookRequest]:
        result = await db.execute(select(BookRequest).where(BookRequest.id == request_id))
        return result.scalars().first()

    @staticmethod
    async def list_pending_requests(
        db: AsyncSession,
        faculty_id: Optional[UUID] = None
    ) -> List[BookRequest]:
        query = select(BookRequest).where(BookRequest.status == RequestStatus.PENDING)
        if faculty_id:
            query = query.where(BookRequest.faculty_id == faculty_id)
        result = await db.execute(query.order_by(BookRequest.requested_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def list_faculty_requests(db: AsyncSession, faculty_id: UUID) -> List[BookRequest]:
        result = await db.execute(
            select(BookRequest)
            .where(BookRequest.faculty_id == faculty_id)
            .order_by(BookRequest.requested_at.desc())
        )
        return list(result.scalars().all())
