from fastapi.testclient import TestClient


COURSE = {
    "code": "cs101",
    "title": "Introduction to Computer Science",
    "description": "Programming fundamentals",
    "credits": 3,
    "instructor": "Dr. Smith",
    "capacity": 30,
    "semester": "Fall",
    "year": 2024,
}


def make_course(client: TestClient, **overrides):
    response = client.post("/courses/", json={**COURSE, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def make_student(client: TestClient, n: int = 1, **overrides):
    payload = {
        "student_id": f"stu{n:03d}",
        "first_name": "John",
        "last_name": f"Doe{n}",
        "email": f"student{n}@example.com",
        "date_of_birth": "2002-01-15",
        "major": "Computer Science",
        "year_level": "Sophomore",
        "gpa": 3.5,
    }
    payload.update(overrides)
    response = client.post("/students/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def enroll(client: TestClient, student, course, **overrides):
    payload = {
        "student_id": student["id"],
        "course_id": course["id"],
        "semester": course["semester"],
        "year": course["year"],
    }
    payload.update(overrides)
    return client.post("/enrollments/", json=payload)


# ============= ROOT ENDPOINT TESTS =============

def test_read_root(client: TestClient):
    """Test root endpoint"""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "docs" in data


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "connected"


# ============= AUTH TESTS =============

def test_login_with_demo_credentials(client: TestClient):
    response = client.post("/auth/login", json={"username": "admin", "password": "admin123"})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["token"]
    assert data["user"]["role"] == "admin"


def test_login_rejects_wrong_password(client: TestClient):
    response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401


def test_logout(client: TestClient):
    response = client.post("/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True


# ============= STUDENT TESTS =============

def test_create_student(client: TestClient):
    """Test creating a new student"""
    data = make_student(client, email="John.Doe@Example.com", address={"city": "Boston", "country": "USA"})
    assert data["student_id"] == "STU001"
    assert data["email"] == "john.doe@example.com"
    assert data["full_name"] == "John Doe1"
    assert data["address"]["city"] == "Boston"
    assert data["is_active"] is True
    assert "id" in data
    assert "created_at" in data


def test_create_student_duplicate_email(client: TestClient):
    """Test creating student with duplicate email fails"""
    make_student(client, 1, email="john@example.com")
    response = client.post("/students/", json={
        "student_id": "STU002", "first_name": "Jane", "last_name": "Doe", "email": "john@example.com",
        "date_of_birth": "2001-05-20", "major": "Mathematics", "year_level": "Junior",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "DuplicateEmail"
    assert "already registered" in response.json()["detail"].lower()


def test_create_student_duplicate_student_id(client: TestClient):
    make_student(client, 1)
    response = client.post("/students/", json={
        "student_id": "STU001", "first_name": "Jane", "last_name": "Doe", "email": "jane@example.com",
        "date_of_birth": "2001-05-20", "major": "Mathematics", "year_level": "Junior",
    })
    assert response.status_code == 400
    assert response.json()["code"] == "DuplicateStudentId"


def test_create_student_invalid_email(client: TestClient):
    """Test creating student with invalid email fails with a field error"""
    response = client.post("/students/", json={
        "student_id": "STU001", "first_name": "John", "last_name": "Doe", "email": "invalid-email",
        "date_of_birth": "2002-01-15", "major": "Computer Science", "year_level": "Sophomore",
    })
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "ValidationError"
    assert any(error["field"] == "email" for error in body["errors"])


def test_create_student_invalid_gpa(client: TestClient):
    response = client.post("/students/", json={
        "student_id": "STU001", "first_name": "John", "last_name": "Doe", "email": "john@example.com",
        "date_of_birth": "2002-01-15", "major": "Computer Science", "year_level": "Sophomore", "gpa": 4.5,
    })
    assert response.status_code == 400
    assert [error["field"] for error in response.json()["errors"]] == ["gpa"]


def test_read_students_pagination(client: TestClient):
    """Test students pagination, newest first"""
    for i in range(5):
        make_student(client, i, first_name=f"Student{i}")

    response = client.get("/students/?page=2&limit=2")
    assert response.status_code == 200
    data = response.json()
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}
    assert [s["first_name"] for s in data["items"]] == ["Student2", "Student1"]


def test_read_students_filters(client: TestClient):
    make_student(client, 1, major="Physics", year_level="Freshman", last_name="Curie")
    make_student(client, 2, major="Mathematics", year_level="Senior")

    by_major = client.get("/students/?major=physics").json()
    assert [s["last_name"] for s in by_major["items"]] == ["Curie"]

    by_level = client.get("/students/?year_level=Senior").json()
    assert by_level["pagination"]["total"] == 1

    by_search = client.get("/students/?search=curie").json()
    assert by_search["pagination"]["total"] == 1


def test_read_student(client: TestClient):
    """Test getting a specific student"""
    student = make_student(client)
    response = client.get(f"/students/{student['id']}")
    assert response.status_code == 200
    assert response.json()["student_id"] == "STU001"


def test_read_student_not_found(client: TestClient):
    """Test getting non-existent student returns 404"""
    response = client.get("/students/9999")
    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()


def test_update_student(client: TestClient):
    """Test updating a student"""
    student = make_student(client)
    response = client.put(f"/students/{student['id']}", json={"first_name": "Johnny", "gpa": 3.9})
    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == "Johnny"
    assert data["gpa"] == 3.9
    assert data["email"] == student["email"]


def test_update_student_duplicate_email(client: TestClient):
    """Test updating student with duplicate email fails"""
    make_student(client, 1)
    second = make_student(client, 2)
    response = client.put(f"/students/{second['id']}", json={"email": "student1@example.com"})
    assert response.status_code == 400


def test_update_student_not_found(client: TestClient):
    """Test updating non-existent student returns 404"""
    response = client.put("/students/9999", json={"first_name": "Updated"})
    assert response.status_code == 404


def test_update_student_rejects_null_required_field(client: TestClient):
    """Explicit nulls on required fields are validation errors, not conflicts"""
    student = make_student(client)
    response = client.put(f"/students/{student['id']}", json={"first_name": None, "phone": None})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "ValidationError"
    assert [error["field"] for error in body["errors"]] == ["first_name"]
    assert client.get(f"/students/{student['id']}").json()["first_name"] == "John"


def test_update_student_clears_optional_field(client: TestClient):
    student = make_student(client, phone="5551234567")
    response = client.put(f"/students/{student['id']}", json={"phone": None})
    assert response.status_code == 200
    assert response.json()["phone"] is None


def test_delete_student_is_soft(client: TestClient):
    """Deleted students keep their record but leave the listing"""
    student = make_student(client)
    response = client.delete(f"/students/{student['id']}")
    assert response.status_code == 200
    assert response.json()["message"] == "Student deleted successfully"

    get_response = client.get(f"/students/{student['id']}")
    assert get_response.status_code == 200
    assert get_response.json()["is_active"] is False
    assert client.get("/students/").json()["pagination"]["total"] == 0


def test_delete_student_not_found(client: TestClient):
    """Test deleting non-existent student returns 404"""
    response = client.delete("/students/9999")
    assert response.status_code == 404


def test_student_stats(client: TestClient):
    make_student(client, 1, major="Physics", gpa=3.0, year_level="Freshman")
    make_student(client, 2, major="Physics", gpa=4.0, year_level="Senior")
    make_student(client, 3, major="Biology", gpa=2.0, year_level="Senior")

    data = client.get("/students/stats/overview").json()
    assert data["overview"] == {"total_students": 3, "avg_gpa": 3.0}
    assert data["by_major"]["Physics"] == {"count": 2, "avg_gpa": 3.5}
    assert data["by_year_level"]["Senior"] == {"count": 2}


# ============= COURSE TESTS =============

def test_create_course(client: TestClient):
    """Test creating a new course"""
    data = make_course(client)
    assert data["code"] == "CS101"
    assert data["credits"] == 3
    assert data["enrolled"] == 0
    assert data["available_seats"] == 30
    assert "id" in data


def test_create_course_minimal(client: TestClient):
    """Capacity defaults to 30 and description to None"""
    response = client.post("/courses/", json={
        "code": "DS200", "title": "Data Structures", "credits": 4, "instructor": "Dr. Jones",
        "semester": "Spring", "year": 2025,
    })
    assert response.status_code == 201
    data = response.json()
    assert data["description"] is None
    assert data["capacity"] == 30


def test_create_course_invalid_credits(client: TestClient):
    """Test creating course with invalid credits fails"""
    response = client.post("/courses/", json={**COURSE, "credits": 7})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "credits"


def test_create_course_invalid_semester(client: TestClient):
    response = client.post("/courses/", json={**COURSE, "semester": "Winter"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "semester"


def test_create_course_duplicate_code(client: TestClient):
    make_course(client)
    response = client.post("/courses/", json={**COURSE, "code": "CS101 "})
    assert response.status_code == 400
    assert response.json()["code"] == "DuplicateCourseCode"


def test_read_courses_filters(client: TestClient):
    make_course(client, code="CS101", title="Python Programming", instructor="Dr. A")
    make_course(client, code="MATH201", title="Calculus", instructor="Dr. B", semester="Spring", year=2025)

    data = client.get("/courses/").json()
    assert data["pagination"]["total"] == 2

    assert client.get("/courses/?semester=Spring").json()["items"][0]["code"] == "MATH201"
    assert client.get("/courses/?year=2024").json()["pagination"]["total"] == 1
    assert client.get("/courses/?instructor=dr. b").json()["items"][0]["code"] == "MATH201"
    assert client.get("/courses/?search=python").json()["items"][0]["code"] == "CS101"


def test_read_course_not_found(client: TestClient):
    """Test getting non-existent course returns 404"""
    response = client.get("/courses/9999")
    assert response.status_code == 404


def test_update_course(client: TestClient):
    """Test updating a course"""
    course = make_course(client)
    response = client.put(f"/courses/{course['id']}", json={"title": "Advanced Python", "credits": 4})
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Advanced Python"
    assert data["credits"] == 4


def test_update_course_ignores_enrolled(client: TestClient):
    """The enrolled counter cannot be written by clients"""
    course = make_course(client)
    response = client.put(f"/courses/{course['id']}", json={"enrolled": 25})
    assert response.status_code == 200
    assert response.json()["enrolled"] == 0


def test_update_course_not_found(client: TestClient):
    """Test updating non-existent course returns 404"""
    response = client.put("/courses/9999", json={"title": "Updated"})
    assert response.status_code == 404


def test_update_course_rejects_null_required_field(client: TestClient):
    course = make_course(client)
    response = client.put(f"/courses/{course['id']}", json={"title": None})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "ValidationError"
    assert body["errors"][0]["field"] == "title"

    cleared = client.put(f"/courses/{course['id']}", json={"description": None})
    assert cleared.status_code == 200
    assert cleared.json()["description"] is None


def test_update_course_capacity_below_enrolled(client: TestClient):
    """Capacity cannot drop below the seats already taken"""
    course = make_course(client, capacity=2)
    for n in range(2):
        assert enroll(client, make_student(client, n), course).status_code == 201

    response = client.put(f"/courses/{course['id']}", json={"capacity": 1})
    assert response.status_code == 400
    assert response.json()["code"] == "CapacityBelowEnrollment"
    assert client.get(f"/courses/{course['id']}").json()["capacity"] == 2

    assert client.put(f"/courses/{course['id']}", json={"capacity": 2}).status_code == 200


def test_update_course_offering_change_respects_capacity(client: TestClient):
    """Moving a course to a term with more enrollments than seats is rejected"""
    course = make_course(client, capacity=2)
    for n in range(2):
        assert enroll(client, make_student(client, n), course, semester="Spring", year=2025).status_code == 201
    assert client.get(f"/courses/{course['id']}").json()["enrolled"] == 0

    response = client.put(f"/courses/{course['id']}", json={"semester": "Spring", "year": 2025, "capacity": 1})
    assert response.status_code == 400
    assert response.json()["code"] == "CapacityBelowEnrollment"

    moved = client.put(f"/courses/{course['id']}", json={"semester": "Spring", "year": 2025})
    assert moved.status_code == 200
    assert moved.json()["enrolled"] == 2
    assert moved.json()["available_seats"] == 0


def test_delete_course_is_soft(client: TestClient):
    course = make_course(client)
    response = client.delete(f"/courses/{course['id']}")
    assert response.status_code == 200

    assert client.get(f"/courses/{course['id']}").json()["is_active"] is False
    assert client.get("/courses/").json()["items"] == []


def test_delete_course_not_found(client: TestClient):
    """Test deleting non-existent course returns 404"""
    response = client.delete("/courses/9999")
    assert response.status_code == 404


def test_course_stats_by_semester(client: TestClient):
    make_course(client, code="CS101", credits=3)
    make_course(client, code="CS102", credits=3)
    make_course(client, code="PHYS101", credits=6, semester="Spring", year=2025)

    data = client.get("/courses/stats/overview").json()
    assert data["overview"]["total_courses"] == 3
    assert data["overview"]["total_capacity"] == 90
    assert data["overview"]["avg_credits"] == 4.0
    assert {k: v["count"] for k, v in data["by_semester"].items()} == {"Fall": 2, "Spring": 1}


def test_course_stats_empty(client: TestClient):
    data = client.get("/courses/stats/overview").json()
    assert data["overview"]["total_courses"] == 0
    assert data["by_semester"] == {}


# ============= ENROLLMENT TESTS =============

def test_create_enrollment(client: TestClient):
    """Test enrolling a student in a course"""
    student = make_student(client)
    course = make_course(client)

    response = enroll(client, student, course, attendance=3, total_classes=4)
    assert response.status_code == 201
    data = response.json()
    assert data["student_id"] == student["id"]
    assert data["course_id"] == course["id"]
    assert data["status"] == "Enrolled"
    assert data["grade"] is None
    assert data["attendance_percentage"] == 75
    assert data["student"]["student_id"] == "STU001"
    assert data["course"]["code"] == "CS101"

    assert client.get(f"/courses/{course['id']}").json()["enrolled"] == 1


def test_create_enrollment_student_not_found(client: TestClient):
    """Test enrollment with non-existent student fails"""
    course = make_course(client)
    response = client.post("/enrollments/", json={
        "student_id": 9999, "course_id": course["id"], "semester": "Fall", "year": 2024,
    })
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "student_id", "message": "Student not found"}]
    assert "student" in response.json()["detail"].lower()


def test_create_enrollment_course_not_found(client: TestClient):
    """Test enrollment with non-existent course fails"""
    student = make_student(client)
    response = client.post("/enrollments/", json={
        "student_id": student["id"], "course_id": 9999, "semester": "Fall", "year": 2024,
    })
    assert response.status_code == 400
    assert "course" in response.json()["detail"].lower()


def test_create_enrollment_invalid_fields(client: TestClient):
    student = make_student(client)
    course = make_course(client)
    response = enroll(client, student, course, status="Sleeping", year=2019)
    assert response.status_code == 400
    fields = {error["field"] for error in response.json()["errors"]}
    assert fields == {"status", "year"}


def test_capacity_and_duplicate_scenario(client: TestClient):
    """capacity=1: first enrollment fills the course, the rest are rejected"""
    course = make_course(client, capacity=1)
    first = make_student(client, 1)
    second = make_student(client, 2)

    assert enroll(client, first, course).status_code == 201
    assert client.get(f"/courses/{course['id']}").json()["enrolled"] == 1

    full = enroll(client, second, course)
    assert full.status_code == 400
    assert full.json()["code"] == "CapacityExceeded"

    duplicate = enroll(client, first, course)
    assert duplicate.status_code == 400
    assert duplicate.json()["code"] == "DuplicateEnrollment"
    assert "already enrolled" in duplicate.json()["detail"].lower()

    assert client.get(f"/courses/{course['id']}").json()["enrolled"] == 1


def test_read_enrollments_with_search(client: TestClient):
    """Test listing and searching enrollments"""
    john = make_student(client, 1, first_name="John")
    jane = make_student(client, 2, first_name="Jane")
    python = make_course(client, code="CS101", title="Python")
    java = make_course(client, code="CS201", title="Java")
    enroll(client, john, python)
    enroll(client, jane, java)

    data = client.get("/enrollments/").json()
    assert data["pagination"]["total"] == 2
    assert all(item["student"] and item["course"] for item in data["items"])

    found = client.get("/enrollments/?search=java").json()
    assert found["pagination"]["total"] == 1
    assert found["items"][0]["student"]["first_name"] == "Jane"

    assert client.get("/enrollments/?status=Dropped").json()["items"] == []


def test_read_enrollment(client: TestClient):
    """Test getting a specific enrollment"""
    student = make_student(client)
    course = make_course(client)
    enrollment = enroll(client, student, course, grade="A").json()

    response = client.get(f"/enrollments/{enrollment['id']}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == enrollment["id"]
    assert data["grade"] == "A"
    assert data["grade_points"] == 4.0
    assert data["course"]["instructor"] == "Dr. Smith"


def test_read_enrollment_not_found(client: TestClient):
    """Test getting non-existent enrollment returns 404"""
    response = client.get("/enrollments/9999")
    assert response.status_code == 404


def test_read_student_and_course_enrollments(client: TestClient):
    student = make_student(client)
    python = make_course(client, code="CS101")
    java = make_course(client, code="CS201")
    enroll(client, student, python)
    enroll(client, student, java)

    assert len(client.get(f"/students/{student['id']}/enrollments").json()) == 2
    assert len(client.get(f"/courses/{python['id']}/enrollments").json()) == 1
    assert client.get("/students/9999/enrollments").status_code == 404
    assert client.get("/courses/9999/enrollments").status_code == 404


def test_update_enrollment_status_releases_seat(client: TestClient):
    student = make_student(client)
    course = make_course(client)
    enrollment = enroll(client, student, course).json()

    response = client.put(f"/enrollments/{enrollment['id']}", json={
        "student_id": student["id"], "course_id": course["id"], "semester": "Fall", "year": 2024,
        "status": "Dropped", "comments": "Schedule conflict",
    })
    assert response.status_code == 200
    assert response.json()["status"] == "Dropped"
    assert response.json()["comments"] == "Schedule conflict"
    assert client.get(f"/courses/{course['id']}").json()["enrolled"] == 0


def test_update_enrollment_not_found(client: TestClient):
    """Test updating non-existent enrollment returns 404"""
    response = client.put("/enrollments/9999", json={
        "student_id": 1, "course_id": 1, "semester": "Fall", "year": 2024,
    })
    assert response.status_code == 404


def test_update_enrollment_requires_full_payload(client: TestClient):
    student = make_student(client)
    course = make_course(client)
    enrollment = enroll(client, student, course).json()
    response = client.put(f"/enrollments/{enrollment['id']}", json={"grade": "A"})
    assert response.status_code == 400


def test_update_grade_records_activity(client: TestClient):
    """Grade update keeps status and shows up in the activity feed"""
    student = make_student(client)
    course = make_course(client)
    enrollment = enroll(client, student, course).json()

    response = client.put(f"/enrollments/{enrollment['id']}/grade", json={"grade": "B+", "comments": "Solid"})
    assert response.status_code == 200
    data = response.json()
    assert data["grade"] == "B+"
    assert data["grade_points"] == 3.3
    assert data["status"] == "Enrolled"
    assert data["comments"] == "Solid"

    assert client.get(f"/enrollments/{enrollment['id']}").json()["grade"] == "B+"
    latest = client.get("/activities/").json()["items"][0]
    assert latest["action"] == "Enrollment Grade Updated"
    assert latest["entity_id"] == enrollment["id"]
    assert "B+" in latest["message"]


def test_update_grade_not_found(client: TestClient):
    response = client.put("/enrollments/9999/grade", json={"grade": "A"})
    assert response.status_code == 404


def test_update_grade_invalid(client: TestClient):
    student = make_student(client)
    course = make_course(client)
    enrollment = enroll(client, student, course).json()
    response = client.put(f"/enrollments/{enrollment['id']}/grade", json={"grade": "E"})
    assert response.status_code == 400


def test_delete_enrollment(client: TestClient):
    """Soft delete hides the enrollment and frees the seat"""
    student = make_student(client)
    course = make_course(client)
    enrollment = enroll(client, student, course).json()

    response = client.delete(f"/enrollments/{enrollment['id']}")
    assert response.status_code == 200
    assert response.json()["message"] == "Enrollment deleted successfully"

    assert client.get(f"/enrollments/{enrollment['id']}").json()["is_active"] is False
    assert client.get("/enrollments/").json()["items"] == []
    assert client.get(f"/courses/{course['id']}").json()["enrolled"] == 0

    latest = client.get("/activities/").json()["items"][0]
    assert latest["action"] == "Enrollment Deleted"
    assert latest["color"] == "red"


def test_delete_enrollment_not_found(client: TestClient):
    """Test deleting non-existent enrollment returns 404"""
    response = client.delete("/enrollments/9999")
    assert response.status_code == 404


def test_enrollment_stats(client: TestClient):
    course = make_course(client)
    spring = make_course(client, code="CS201", semester="Spring", year=2025)
    students = [make_student(client, n) for n in range(3)]
    enroll(client, students[0], course)
    enroll(client, students[1], course, status="Completed")
    enroll(client, students[2], spring, status="Dropped")

    data = client.get("/enrollments/stats/overview").json()
    assert data["overview"] == {
        "total_enrollments": 3, "enrolled_count": 1, "completed_count": 1, "dropped_count": 1,
    }
    assert data["by_semester"]["Fall"] == {"count": 2, "enrolled_count": 1}
    assert data["by_status"]["Dropped"] == {"count": 1}


def test_reconcile_endpoints(client: TestClient):
    course = make_course(client)
    enroll(client, make_student(client), course)

    results = client.post("/courses/reconcile").json()
    assert results == [{"course_id": course["id"], "code": "CS101", "previous": 1, "enrolled": 1, "changed": False}]

    assert client.post(f"/courses/{course['id']}/reconcile").json()["enrolled"] == 1
    assert client.post("/courses/9999/reconcile").status_code == 404


# ============= ACTIVITY TESTS =============

def test_activity_feed_is_newest_first_and_capped(client: TestClient):
    for n in range(12):
        make_course(client, code=f"C{n:03d}")

    items = client.get("/activities/").json()["items"]
    assert len(items) == 10
    assert items[0]["action"] == "Course Created"
    assert "C011" in items[0]["message"]
    assert items[0]["entity_type"] == "Course"
