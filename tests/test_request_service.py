from datetime import timedelta

import pytest
from sqlalchemy import select, func

from library_app.core.exceptions import (
    BusinessRuleError, ConflictError, ForbiddenError, NotFoundError, ValidationError
)
from library_app.models.book import Book, BookStatus
from library_app.models.book_request import BookRequest, RequestType, RequestStatus
from library_app.models.rental import Rental, RentalStatus
from library_app.models.notification import Notification, NotificationType
from library_app.models.user import AccountStatus, User, UserRole
from library_app.services.rental_service import RentalService
from library_app.services.request_service import BookRequestService
from tests.factories import days_from_now, make_book, make_user


async def reload(db, model, id_):
    result = await db.execute(
        select(model).where(model.id == id_).execution_options(populate_existing=True)
    )
    return result.scalars().one()


async def issue_request(db, student, faculty, book, **kwargs):
    return await BookRequestService.create_request(
        db, student.id, faculty.id, book.id, RequestType.ISSUE, **kwargs
    )


# ========== Create ==========

async def test_issue_request_is_created_pending(db, student, faculty, book, manager, sent_emails):
    book_request = await issue_request(db, student, faculty, book, reason="Course reading")

    assert book_request.status == RequestStatus.PENDING
    assert book_request.type == RequestType.ISSUE
    assert book_request.rental_days == 14
    assert book_request.student_enrollment_number == student.enrollment_number
    assert book_request.faculty_email == faculty.email
    assert book_request.book_title == book.title

    assert [mail["to"] for mail in sent_emails] == [manager.email]
    assert "Issue" in sent_emails[0]["subject"]


async def test_request_type_accepts_plain_string(db, student, faculty, book):
    book_request = await BookRequestService.create_request(db, student.id, faculty.id, book.id, "issue")
    assert book_request.type == RequestType.ISSUE


async def test_missing_fields_are_rejected(db, student, faculty):
    with pytest.raises(ValidationError, match="Student, faculty, book, and type are required"):
        await BookRequestService.create_request(db, student.id, faculty.id, None, RequestType.ISSUE)


async def test_unknown_type_is_rejected(db, student, faculty, book):
    with pytest.raises(ValidationError, match="issue"):
        await BookRequestService.create_request(db, student.id, faculty.id, book.id, "renew")


async def test_student_of_another_faculty_is_forbidden(db, student, book):
    other_faculty = await make_user(db, UserRole.FACULTY)
    with pytest.raises(ForbiddenError, match="not assigned to this faculty"):
        await BookRequestService.create_request(
            db, student.id, other_faculty.id, book.id, RequestType.ISSUE
        )


async def test_issue_request_needs_available_book(db, student, faculty):
    book = await make_book(db, rental_status=BookStatus.RENTED)
    with pytest.raises(BusinessRuleError, match="not available"):
        await issue_request(db, student, faculty, book)


async def test_blocked_student_cannot_be_requested_a_book(db, student, faculty, book):
    book_id = book.id
    student.account_status = AccountStatus.BLOCKED
    await db.commit()

    with pytest.raises(BusinessRuleError, match="blocked due to violations"):
        await issue_request(db, student, faculty, book)

    count = await db.execute(select(func.count(BookRequest.id)))
    assert count.scalar() == 0
    assert (await reload(db, Book, book_id)).rental_status == BookStatus.AVAILABLE


async def test_student_at_the_cap_cannot_be_requested_a_book(db, student, faculty, book):
    for _ in range(3):
        await RentalService.create_rental(db, student.id, (await make_book(db)).id)

    with pytest.raises(BusinessRuleError, match="Maximum 3 active rentals"):
        await issue_request(db, student, faculty, book)

    count = await db.execute(select(func.count(BookRequest.id)))
    assert count.scalar() == 0


async def test_return_request_is_allowed_at_the_cap(db, student, faculty):
    books = [await make_book(db) for _ in range(3)]
    for book in books:
        await RentalService.create_rental(db, student.id, book.id)

    book_request = await BookRequestService.create_request(
        db, student.id, faculty.id, books[0].id, RequestType.RETURN
    )
    assert book_request.status == RequestStatus.PENDING


async def test_faculty_assigns_by_enrollment_number(db, student, faculty, book):
    spaced = f"{student.enrollment_number[:4]} {student.enrollment_number[4:]}"

    book_request = await BookRequestService.assign_book(db, faculty.id, spaced, book.id, rental_days=5)

    assert book_request.type == RequestType.ISSUE
    assert book_request.student_id == student.id
    assert book_request.rental_days == 5


async def test_faculty_assignment_needs_a_known_student(db, faculty, book):
    with pytest.raises(NotFoundError, match="Student must create an account first"):
        await BookRequestService.assign_book(db, faculty.id, "999999999999", book.id)


async def test_faculty_assignment_checks_eligibility(db, student, faculty, book):
    enrollment_number = student.enrollment_number
    student.account_status = AccountStatus.PENALTY
    student.penalty_until = days_from_now(5)
    await db.commit()

    with pytest.raises(BusinessRuleError, match="under penalty until"):
        await BookRequestService.assign_book(db, faculty.id, enrollment_number, book.id)


async def test_duplicate_pending_issue_request_is_refused(db, student, faculty, book):
    ids = (student.id, faculty.id, book.id)
    await BookRequestService.create_request(db, *ids, RequestType.ISSUE)

    with pytest.raises(BusinessRuleError, match="already a pending issue request"):
        await BookRequestService.create_request(db, *ids, RequestType.ISSUE)

    count = await db.execute(select(func.count(BookRequest.id)))
    assert count.scalar() == 1


async def test_pending_index_backs_the_duplicate_check(db, student, faculty, book, monkeypatch):
    ids = (student.id, faculty.id, book.id)
    await BookRequestService.create_request(db, *ids, RequestType.ISSUE)

    async def no_pending(*args, **kwargs):
        return None

    monkeypatch.setattr(BookRequestService, "_find_pending", staticmethod(no_pending))
    with pytest.raises(ConflictError, match="already a pending issue request"):
        await BookRequestService.create_request(db, *ids, RequestType.ISSUE)


async def test_return_request_needs_current_holder(db, student, faculty, book):
    with pytest.raises(BusinessRuleError, match="not currently issued to this student"):
        await BookRequestService.create_request(
            db, student.id, faculty.id, book.id, RequestType.RETURN
        )


# ========== Decide ==========

async def test_approving_issue_request_rents_the_book(db, manager, student, faculty, book, sent_emails):
    student_id, book_id = student.id, book.id
    request_id = (await issue_request(db, student, faculty, book, rental_days=10)).id

    approved = await BookRequestService.approve_request(db, request_id, manager.id, "ok")

    assert approved.status == RequestStatus.APPROVED
    assert approved.approved_by == manager.id
    assert approved.approved_at is not None
    assert approved.manager_notes == "ok"

    book = await reload(db, Book, book_id)
    assert book.rental_status == BookStatus.RENTED
    assert book.current_holder_id == student_id
    rental = await reload(db, Rental, book.current_rental_id)
    assert rental.status == RentalStatus.ACTIVE
    assert rental.due_date - rental.issued_at == timedelta(days=10)
    assert (await reload(db, User, student_id)).active_rentals == 1

    assert sent_emails[-1]["to"] == faculty.email
    assert "Approved" in sent_emails[-1]["subject"]


async def test_approval_rechecks_eligibility(db, manager, student, faculty, book):
    manager_id, student_id, book_id = manager.id, student.id, book.id
    request_id = (await issue_request(db, student, faculty, book)).id
    student.account_status = AccountStatus.BLOCKED
    await db.commit()

    with pytest.raises(BusinessRuleError, match="blocked due to violations"):
        await BookRequestService.approve_request(db, request_id, manager_id)

    assert (await reload(db, BookRequest, request_id)).status == RequestStatus.PENDING
    assert (await reload(db, Book, book_id)).rental_status == BookStatus.AVAILABLE
    assert (await reload(db, User, student_id)).active_rentals == 0


async def test_pending_requests_cannot_push_past_the_cap(db, manager, student, faculty):
    manager_id, student_id = manager.id, student.id
    for _ in range(2):
        await RentalService.create_rental(db, student_id, (await make_book(db)).id)
    last_book = await make_book(db)
    last_book_id = last_book.id
    first = (await issue_request(db, student, faculty, await make_book(db))).id
    second = (await issue_request(db, student, faculty, last_book)).id

    await BookRequestService.approve_request(db, first, manager_id)
    with pytest.raises(BusinessRuleError, match="Maximum 3 active rentals"):
        await BookRequestService.approve_request(db, second, manager_id)

    assert (await reload(db, User, student_id)).active_rentals == 3
    assert (await reload(db, BookRequest, second)).status == RequestStatus.PENDING
    assert (await reload(db, Book, last_book_id)).rental_status == BookStatus.AVAILABLE


async def test_approval_after_book_was_taken_aborts(db, manager, student, faculty, book):
    manager_id, book_id = manager.id, book.id
    request_id = (await issue_request(db, student, faculty, book)).id
    rival = await make_user(db, UserRole.STUDENT, assigned_faculty_id=faculty.id)
    await RentalService.create_rental(db, rival.id, book_id)

    with pytest.raises(ConflictError, match="Book is no longer available"):
        await BookRequestService.approve_request(db, request_id, manager_id)

    book_request = await reload(db, BookRequest, request_id)
    assert book_request.status == RequestStatus.PENDING
    assert book_request.approved_at is None


async def test_approving_return_request_closes_the_rental(db, manager, student, faculty, book):
    student_id, book_id, manager_id = student.id, book.id, manager.id
    rental_id = (await RentalService.create_rental(db, student_id, book_id))["rental"].id
    request_id = (await BookRequestService.create_request(
        db, student_id, faculty.id, book_id, RequestType.RETURN
    )).id

    approved = await BookRequestService.approve_request(db, request_id, manager_id)

    assert approved.status == RequestStatus.APPROVED
    rental = await reload(db, Rental, rental_id)
    assert rental.status == RentalStatus.RETURNED
    assert rental.actual_returned_at is not None
    book = await reload(db, Book, book_id)
    assert book.rental_status == BookStatus.AVAILABLE
    assert book.current_rental_id is None
    assert (await reload(db, User, student_id)).active_rentals == 0


@pytest.mark.parametrize("decision,outcome", [("approve", "approved"), ("reject", "rejected")])
async def test_decision_leaves_an_in_app_note_for_the_faculty(
    db, manager, student, faculty, book, decision, outcome
):
    faculty_id = faculty.id
    request_id = (await issue_request(db, student, faculty, book)).id

    await getattr(BookRequestService, f"{decision}_request")(db, request_id, manager.id)

    result = await db.execute(select(Notification).where(Notification.user_id == faculty_id))
    notes = result.scalars().all()
    assert [n.type for n in notes] == [NotificationType.REQUEST_UPDATE]
    assert notes[0].message.endswith(f"was {outcome}.")
    assert book.title in notes[0].message


async def test_rejecting_leaves_rentals_untouched(db, manager, student, faculty, book, sent_emails):
    book_id, student_id = book.id, student.id
    request_id = (await issue_request(db, student, faculty, book)).id

    rejected = await BookRequestService.reject_request(db, request_id, manager.id, "wrong student")

    assert rejected.status == RequestStatus.REJECTED
    assert rejected.rejected_by == manager.id
    assert rejected.rejected_at is not None
    assert rejected.manager_notes == "wrong student"
    assert (await reload(db, Book, book_id)).rental_status == BookStatus.AVAILABLE
    assert (await reload(db, User, student_id)).active_rentals == 0
    count = await db.execute(select(func.count(Rental.id)))
    assert count.scalar() == 0

    assert "wrong student" in sent_emails[-1]["html"]


@pytest.mark.parametrize("second", ["approve", "reject"])
async def test_decided_request_cannot_be_decided_again(db, manager, student, faculty, book, second):
    manager_id, book_id = manager.id, book.id
    request_id = (await issue_request(db, student, faculty, book)).id
    await BookRequestService.reject_request(db, request_id, manager_id)

    decide = getattr(BookRequestService, f"{second}_request")
    with pytest.raises(NotFoundError, match="already processed"):
        await decide(db, request_id, manager_id)

    book_request = await reload(db, BookRequest, request_id)
    assert book_request.status == RequestStatus.REJECTED
    assert (await reload(db, Book, book_id)).rental_status == BookStatus.AVAILABLE


async def test_only_the_manager_decides(db, student, faculty, book):
    faculty_id = faculty.id
    request_id = (await issue_request(db, student, faculty, book)).id

    with pytest.raises(ForbiddenError):
        await BookRequestService.approve_request(db, request_id, faculty_id)
    with pytest.raises(ValidationError, match="Manager ID is required"):
        await BookRequestService.reject_request(db, request_id, None)

    assert (await reload(db, BookRequest, request_id)).status == RequestStatus.PENDING


async def test_mail_failure_does_not_fail_the_decision(db, manager, student, faculty, book, monkeypatch):
    request_id = (await issue_request(db, student, faculty, book)).id

    async def broken_send(self, to, subject, html_content):
        raise RuntimeError("smtp down")

    from library_app.services.email_service import EmailService
    monkeypatch.setattr(EmailService, "send_email", broken_send)

    rejected = await BookRequestService.reject_request(db, request_id, manager.id)
    assert rejected.status == RequestStatus.REJECTED


# ========== Queries ==========

async def test_pending_and_faculty_listings(db, manager, faculty, student):
    first = await issue_request(db, student, faculty, await make_book(db))
    second = await issue_request(db, student, faculty, await make_book(db))
    await BookRequestService.reject_request(db, first.id, manager.id)

    pending = await BookRequestService.list_pending_requests(db, faculty_id=faculty.id)
    assert [r.id for r in pending] == [second.id]

    everything = await BookRequestService.list_faculty_requests(db, faculty.id)
    assert {r.id for r in everything} == {first.id, second.id}

    assert (await BookRequestService.get_request(db, second.id)).book_title == second.book_title
