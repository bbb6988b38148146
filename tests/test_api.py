import uuid

from library_app.models.user import AccountStatus, UserRole
from tests.factories import make_book, make_user


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_book_endpoints(client):
    created = await client.post("/api/v1/books", json={
        "title": "Dune", "author": "Frank Herbert", "isbn": "9780441013593", "genre": ["Sci-Fi"]
    })
    assert created.status_code == 201
    book = created.json()["data"]
    assert book["rental_status"] == "AVAILABLE"

    duplicate = await client.post("/api/v1/books", json={"title": "Dune", "author": "F. H.", "isbn": "9780441013593"})
    assert duplicate.status_code == 409
    assert duplicate.json() == {
        "success": False, "error": "A book with this ISBN already exists", "kind": "conflict"
    }

    listing = await client.get("/api/v1/books", params={"search": "dune"})
    body = listing.json()
    assert body["success"] is True
    assert body["data"]["pagination"]["total_books"] == 1

    genres = await client.get("/api/v1/books/genres")
    assert genres.json()["data"] == ["Sci-Fi"]

    updated = await client.put(f"/api/v1/books/{book['id']}", json={"edition": "40th Anniversary"})
    assert updated.json()["data"]["edition"] == "40th Anniversary"

    missing = await client.get(f"/api/v1/books/{uuid.uuid4()}")
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"


async def test_book_import_endpoint(client):
    response = await client.post("/api/v1/books/import", json={"rows": [
        {"Title": "A", "ISBN": "1"}, {"Title": "B", "ISBN": "1"}
    ]})
    assert response.json()["data"] == {"imported": 1, "skipped": 1, "errors": []}


async def test_registration_and_eligibility(client, db):
    faculty = await client.post("/api/v1/users/faculties", json={"name": "Dr. Rao", "email": "rao@example.com"})
    faculty_id = faculty.json()["data"]["id"]

    student = await client.post("/api/v1/users/students", json={
        "name": "Kiran", "email": "kiran@example.com", "phone": "9876543210",
        "enrollment_number": "202400000001", "assigned_faculty_id": faculty_id
    })
    assert student.status_code == 201
    student_id = student.json()["data"]["id"]

    eligibility = await client.get(f"/api/v1/users/{student_id}/eligibility")
    assert eligibility.json()["data"] == {"can_rent": True, "reason": None}

    bad = await client.post("/api/v1/users/students", json={
        "name": "Bad", "email": "bad@example.com", "phone": "9876543210",
        "enrollment_number": "42", "assigned_faculty_id": faculty_id
    })
    assert bad.status_code == 400
    assert bad.json()["kind"] == "validation"

    students = await client.get("/api/v1/users/students", params={"faculty_id": faculty_id})
    assert [s["id"] for s in students.json()["data"]] == [student_id]
    assert students.json()["data"][0]["active_rental_count"] == 0

    faculties = await client.get("/api/v1/users/faculties", params={"include_stats": True})
    assert faculties.json()["data"][0]["students_count"] == 1


async def test_second_manager_is_refused(client):
    first = await client.post("/api/v1/users/manager", json={"name": "M", "email": "m@example.com"})
    assert first.status_code == 201
    second = await client.post("/api/v1/users/manager", json={"name": "N", "email": "n@example.com"})
    assert second.status_code == 409
    assert second.json()["error"] == "A manager account already exists"


async def test_manager_assign_and_return(client, db):
    manager = await make_user(db, UserRole.MANAGER)
    faculty = await make_user(db, UserRole.FACULTY)
    student = await make_user(db, UserRole.STUDENT, assigned_faculty_id=faculty.id)
    book = await make_book(db)
    manager_id, student_id, book_id = str(manager.id), str(student.id), str(book.id)

    assigned = await client.post("/api/v1/manager/assign-book", json={
        "manager_id": manager_id,
        "enrollment_number": student.enrollment_number,
        "book_id": book_id,
        "rental_days": 7
    })
    assert assigned.status_code == 200
    data = assigned.json()["data"]
    assert data["student"] == student.enrollment_number
    rental_id = data["rental"]["id"]

    again = await client.post("/api/v1/manager/assign-book", json={
        "manager_id": manager_id, "enrollment_number": student.enrollment_number, "book_id": book_id
    })
    assert again.status_code == 409
    assert again.json()["error"] == "Book is not available"

    active = await client.get("/api/v1/rentals/active")
    assert [r["id"] for r in active.json()["data"]] == [rental_id]

    no_manager = await client.post("/api/v1/manager/return-book", json={"rental_id": rental_id})
    assert no_manager.status_code == 400
    assert no_manager.json()["error"] == "Manager ID is required"

    returned = await client.post("/api/v1/manager/return-book", json={
        "manager_id": manager_id, "rental_id": rental_id
    })
    assert returned.json()["data"]["status"] == "MANUALLY_RETURNED"

    history = await client.get(f"/api/v1/rentals/user/{student_id}")
    assert [r["status"] for r in history.json()["data"]] == ["MANUALLY_RETURNED"]

    notifications = await client.get(f"/api/v1/notifications/{student_id}")
    body = notifications.json()["data"]
    assert body["total"] == 2
    assert body["unread_count"] == 2

    first_id = body["notifications"][0]["id"]
    marked = await client.post(f"/api/v1/notifications/{first_id}/read", params={"user_id": student_id})
    assert marked.status_code == 200
    unread = await client.get(f"/api/v1/notifications/{student_id}", params={"include_read": False})
    assert unread.json()["data"]["total"] == 1


async def test_request_workflow_over_http(client, db):
    manager = await make_user(db, UserRole.MANAGER)
    faculty = await make_user(db, UserRole.FACULTY)
    student = await make_user(db, UserRole.STUDENT, assigned_faculty_id=faculty.id)
    book = await make_book(db)
    manager_id, faculty_id = str(manager.id), str(faculty.id)
    student_id, book_id = str(student.id), str(book.id)

    created = await client.post("/api/v1/requests", json={
        "student_id": student_id, "faculty_id": faculty_id, "book_id": book_id, "type": "issue"
    })
    assert created.status_code == 201
    request_id = created.json()["data"]["id"]

    pending = await client.get("/api/v1/requests/pending", params={"faculty_id": faculty_id})
    assert [r["id"] for r in pending.json()["data"]] == [request_id]

    approved = await client.post(f"/api/v1/requests/{request_id}/approve", json={"manager_id": manager_id})
    assert approved.json()["data"]["status"] == "approved"

    again = await client.post(f"/api/v1/requests/{request_id}/reject", json={"manager_id": manager_id})
    assert again.status_code == 404
    assert again.json()["error"] == "Request not found or already processed"

    returning = await client.post("/api/v1/requests", json={
        "student_id": student_id, "faculty_id": faculty_id, "book_id": book_id, "type": "return"
    })
    return_id = returning.json()["data"]["id"]
    await client.post(f"/api/v1/requests/{return_id}/approve", json={"manager_id": manager_id})

    book_now = await client.get(f"/api/v1/books/{book_id}")
    assert book_now.json()["data"]["rental_status"] == "AVAILABLE"

    history = await client.get(f"/api/v1/requests/faculty/{faculty_id}")
    assert {r["status"] for r in history.json()["data"]} == {"approved"}


async def test_stats_endpoints(client, db):
    manager = await make_user(db, UserRole.MANAGER)
    faculty = await make_user(db, UserRole.FACULTY)
    student = await make_user(db, UserRole.STUDENT, assigned_faculty_id=faculty.id)
    await make_book(db)

    dashboard = await client.get("/api/v1/stats/dashboard", params={"user_id": str(manager.id)})
    assert dashboard.json()["data"]["total_books"] == 1

    student_dashboard = await client.get("/api/v1/stats/dashboard", params={"user_id": str(student.id)})
    assert student_dashboard.json()["data"]["can_rent"] is True

    overview = await client.get("/api/v1/stats/admin")
    assert overview.json()["data"]["stats"]["books"]["available"] == 1
    assert overview.json()["data"]["overdue_rentals"] == []

    check = await client.get("/api/v1/stats/rental-check")
    assert check.json()["data"]["total_rented_books"] == 0


async def test_faculty_assign_book_files_an_issue_request(client, db):
    faculty = await make_user(db, UserRole.FACULTY)
    student = await make_user(db, UserRole.STUDENT, assigned_faculty_id=faculty.id)
    book = await make_book(db)
    faculty_id, student_id, book_id = str(faculty.id), str(student.id), str(book.id)

    created = await client.post("/api/v1/faculty/assign-book", json={
        "faculty_id": faculty_id,
        "enrollment_number": student.enrollment_number,
        "book_id": book_id,
        "rental_days": 10
    })
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["student_id"] == student_id
    assert data["type"] == "issue"
    assert data["rental_days"] == 10

    blocked = await make_user(
        db, UserRole.STUDENT, assigned_faculty_id=faculty.id, account_status=AccountStatus.BLOCKED
    )
    refused = await client.post("/api/v1/faculty/assign-book", json={
        "faculty_id": faculty_id,
        "enrollment_number": blocked.enrollment_number,
        "book_id": str((await make_book(db)).id)
    })
    assert refused.status_code == 400
    assert refused.json() == {
        "success": False, "error": "Your account is blocked due to violations", "kind": "business_rule"
    }
