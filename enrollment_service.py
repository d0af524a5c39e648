"""Enrollment lifecycle and the course occupancy counter.

``Course.enrolled`` caches the number of active enrollments with status
Enrolled in the course's own offering (its semester and year). Only this
module writes it. Every write that can add occupancy first issues the counter
``UPDATE`` on the course row, which holds the row lock (a database write lock
on SQLite) until commit; the occupancy count and the capacity check then run
under that lock, so concurrent enrollments into one course are serialized.
Duplicate offerings are rejected by the ``uq_enrollment_offering`` unique
constraint; the pre-check only gives a friendlier error in the common case.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from activity import ActivityLog
from database import paginate
from errors import AppError, ConflictError, NotFoundError, ValidationError
from models import Course, Enrollment, EnrollmentStatus, EntityType, Student, utcnow
from schemas import EnrollmentCreate, EnrollmentUpdate

logger = logging.getLogger(__name__)

ENROLLED = EnrollmentStatus.ENROLLED.value

DUPLICATE_MESSAGE = "Student is already enrolled in this course for this semester"
CAPACITY_MESSAGE = "Course is at full capacity"
CAPACITY_BELOW_MESSAGE = "Capacity cannot be lower than the number of enrolled students"

GRADE_POINTS: Dict[str, Optional[float]] = {
    "A+": 4.0, "A": 4.0, "A-": 3.7,
    "B+": 3.3, "B": 3.0, "B-": 2.7,
    "C+": 2.3, "C": 2.0, "C-": 1.7,
    "D+": 1.3, "D": 1.0, "D-": 0.7,
    "F": 0.0,
    # Non-letter outcomes carry no grade points
    "W": None, "I": None, "P": None, "NP": None,
}


def occupies_seat(course: Course, semester: str, year: int, status: str, is_active: bool = True) -> bool:
    """Whether an enrollment with these fields is counted in ``course.enrolled``"""
    return is_active and status == ENROLLED and course.semester == semester and course.year == year


def count_occupancy(session: Session, course_id: int, semester: str, year: int,
                    exclude_id: Optional[int] = None) -> int:
    """Active Enrolled enrollments for one course offering"""
    statement = select(func.count(Enrollment.id)).where(
        Enrollment.course_id == course_id,
        Enrollment.semester == semester,
        Enrollment.year == year,
        Enrollment.status == ENROLLED,
        Enrollment.is_active == True,  # noqa: E712
    )
    if exclude_id is not None:
        statement = statement.where(Enrollment.id != exclude_id)
    return session.exec(statement).one()


def _lock_course(session: Session, course_id: int, delta: int) -> None:
    result = session.connection().execute(
        update(Course).where(Course.id == course_id).values(enrolled=Course.enrolled + delta)
    )
    if result.rowcount == 0:
        raise NotFoundError("Course")


def _release_seat(session: Session, course_id: int) -> None:
    session.connection().execute(
        update(Course)
        .where(Course.id == course_id, Course.enrolled > 0)
        .values(enrolled=Course.enrolled - 1)
    )


def _ensure_capacity(session: Session, course_id: int, semester: str, year: int,
                     exclude_id: Optional[int] = None) -> None:
    # Must run after _lock_course in the same transaction
    capacity = session.exec(select(Course.capacity).where(Course.id == course_id)).one()
    occupancy = count_occupancy(session, course_id, semester, year, exclude_id)
    if occupancy >= capacity:
        logger.warning(f"Course {course_id} is full for {semester} {year} ({occupancy}/{capacity})")
        raise ConflictError(CAPACITY_MESSAGE, code="CapacityExceeded")


def _find_duplicate(session: Session, student_id: int, course_id: int, semester: str, year: int) -> Optional[Enrollment]:
    statement = select(Enrollment).where(
        Enrollment.student_id == student_id,
        Enrollment.course_id == course_id,
        Enrollment.semester == semester,
        Enrollment.year == year,
    )
    return session.exec(statement).first()


def _resolve(session: Session, student_id: int, course_id: int) -> Tuple[Student, Course]:
    # Unknown references in the payload are reported as bad input
    student = session.get(Student, student_id)
    if not student:
        logger.warning(f"Student not found: {student_id}")
        raise ValidationError([{"field": "student_id", "message": "Student not found"}], detail="Student not found")
    course = session.get(Course, course_id)
    if not course:
        logger.warning(f"Course not found: {course_id}")
        raise ValidationError([{"field": "course_id", "message": "Course not found"}], detail="Course not found")
    return student, course


def ensure_capacity_covers(session: Session, course_id: int, capacity: int, semester: str, year: int) -> None:
    """Lock the course and reject a capacity below the occupancy of the given offering.

    The transaction is rolled back before raising.
    """
    _lock_course(session, course_id, 0)
    occupancy = count_occupancy(session, course_id, semester, year)
    if capacity < occupancy:
        session.rollback()
        logger.warning(f"Course {course_id} capacity {capacity} is below {occupancy} enrolled for {semester} {year}")
        raise ConflictError(CAPACITY_BELOW_MESSAGE, code="CapacityBelowEnrollment")


def get_enrollment(session: Session, enrollment_id: int) -> Enrollment:
    enrollment = session.get(Enrollment, enrollment_id)
    if not enrollment:
        logger.warning(f"Enrollment not found with ID: {enrollment_id}")
        raise NotFoundError("Enrollment")
    return enrollment


def list_enrollments(session: Session, page: int = 1, limit: int = 10, status: Optional[str] = None,
                     semester: Optional[str] = None, year: Optional[int] = None,
                     search: Optional[str] = None) -> Tuple[List[Enrollment], dict]:
    """Active enrollments, newest first, with optional filters and a text search"""
    statement = (
        select(Enrollment)
        .join(Student, Enrollment.student_id == Student.id)
        .join(Course, Enrollment.course_id == Course.id)
        .where(Enrollment.is_active == True)  # noqa: E712
    )
    if status:
        statement = statement.where(Enrollment.status == status)
    if semester:
        statement = statement.where(Enrollment.semester == semester)
    if year:
        statement = statement.where(Enrollment.year == year)
    if search:
        pattern = f"%{search}%"
        statement = statement.where(or_(
            col(Student.student_id).ilike(pattern),
            col(Student.first_name).ilike(pattern),
            col(Student.last_name).ilike(pattern),
            col(Course.code).ilike(pattern),
            col(Course.title).ilike(pattern),
        ))
    statement = statement.order_by(col(Enrollment.enrollment_date).desc(), col(Enrollment.id).desc())
    return paginate(session, statement, page, limit)


def create_enrollment(session: Session, data: EnrollmentCreate,
                      activity: Optional[ActivityLog] = None) -> Enrollment:
    """Enroll a student in a course offering.

    Raises:
        ValidationError: the student or course does not exist.
        ConflictError: ``DuplicateEnrollment`` if the student already has an
            enrollment for this offering, ``CapacityExceeded`` if the offering
            is full.
    """
    logger.info(
        f"Creating enrollment for student {data.student_id} in course {data.course_id} "
        f"({data.semester} {data.year})"
    )
    student, course = _resolve(session, data.student_id, data.course_id)

    if _find_duplicate(session, data.student_id, data.course_id, data.semester, data.year):
        logger.warning(f"Student {data.student_id} already enrolled in course {data.course_id} "
                       f"for {data.semester} {data.year}")
        raise ConflictError(DUPLICATE_MESSAGE, code="DuplicateEnrollment")

    enrollment = Enrollment(**data.model_dump())
    if enrollment.grade:
        enrollment.grade_points = GRADE_POINTS.get(enrollment.grade)
    seats = 1 if occupies_seat(course, data.semester, data.year, data.status) else 0
    try:
        _lock_course(session, course.id, seats)
        _ensure_capacity(session, course.id, data.semester, data.year)
        session.add(enrollment)
        session.flush()
    except IntegrityError:
        session.rollback()
        logger.warning(f"Duplicate enrollment rejected by constraint for student {data.student_id} "
                       f"in course {data.course_id}")
        raise ConflictError(DUPLICATE_MESSAGE, code="DuplicateEnrollment")
    except AppError:
        session.rollback()
        raise
    session.commit()
    session.refresh(enrollment)

    logger.info(f"Enrollment created successfully with ID: {enrollment.id}")
    if activity:
        activity.emit(
            "Enrollment Created", EntityType.ENROLLMENT, enrollment.id,
            f'New enrollment for "{student.first_name} {student.last_name}" in "{course.title}" created.',
        )
    return enrollment


def update_enrollment(session: Session, enrollment_id: int, data: EnrollmentUpdate,
                      activity: Optional[ActivityLog] = None) -> Enrollment:
    """Replace an enrollment's fields, moving its seat when the status or offering changes"""
    logger.info(f"Updating enrollment with ID: {enrollment_id}")
    enrollment = get_enrollment(session, enrollment_id)
    student, course = _resolve(session, data.student_id, data.course_id)
    old_course = session.get(Course, enrollment.course_id)

    changes = data.model_dump(exclude_unset=True)
    new_status = changes.get("status", enrollment.status)
    same_offering = (enrollment.course_id, enrollment.semester, enrollment.year) == \
        (data.course_id, data.semester, data.year)
    moved = old_course is None or old_course.id != course.id

    was_counted = old_course is not None and occupies_seat(
        old_course, enrollment.semester, enrollment.year, enrollment.status, enrollment.is_active)
    will_count = occupies_seat(course, data.semester, data.year, new_status, enrollment.is_active)
    entering = (enrollment.is_active and new_status == ENROLLED
                and not (enrollment.status == ENROLLED and same_offering))
    claim = 1 if will_count and (moved or not was_counted) else 0

    try:
        steps = []
        if entering or claim:
            steps.append((course.id, "claim"))
        if was_counted and (moved or not will_count):
            steps.append((old_course.id, "release"))
        # Course rows are always locked in ascending id order
        for target_id, step in sorted(steps):
            if step == "release":
                _release_seat(session, target_id)
                continue
            _lock_course(session, target_id, claim)
            if entering:
                _ensure_capacity(session, target_id, data.semester, data.year, exclude_id=enrollment.id)

        for key, value in changes.items():
            setattr(enrollment, key, value)
        if "grade" in changes:
            enrollment.grade_points = GRADE_POINTS.get(enrollment.grade) if enrollment.grade else None
        enrollment.updated_at = utcnow()
        session.add(enrollment)
        session.flush()
    except IntegrityError:
        session.rollback()
        logger.warning(f"Update of enrollment {enrollment_id} would duplicate an existing offering")
        raise ConflictError(DUPLICATE_MESSAGE, code="DuplicateEnrollment")
    except AppError:
        session.rollback()
        raise
    session.commit()
    session.refresh(enrollment)

    logger.info(f"Enrollment updated successfully: {enrollment_id}")
    if activity:
        activity.emit(
            "Enrollment Updated", EntityType.ENROLLMENT, enrollment.id,
            f'Enrollment for "{student.first_name} {student.last_name}" in "{course.title}" updated.',
        )
    return enrollment


def update_grade(session: Session, enrollment_id: int, grade: str, comments: Optional[str] = None,
                 activity: Optional[ActivityLog] = None) -> Enrollment:
    """Record a grade; status and occupancy are left untouched"""
    logger.info(f"Updating grade for enrollment {enrollment_id} to {grade}")
    enrollment = get_enrollment(session, enrollment_id)
    enrollment.grade = grade
    enrollment.grade_points = GRADE_POINTS.get(grade)
    if comments is not None:
        enrollment.comments = comments
    enrollment.updated_at = utcnow()
    session.add(enrollment)
    session.commit()
    session.refresh(enrollment)

    if activity:
        title = enrollment.course.title if enrollment.course else f"course {enrollment.course_id}"
        activity.emit(
            "Enrollment Grade Updated", EntityType.ENROLLMENT, enrollment.id,
            f'Grade for enrollment in "{title}" updated to {grade}.',
        )
    return enrollment


def delete_enrollment(session: Session, enrollment_id: int, activity: Optional[ActivityLog] = None) -> Enrollment:
    """Soft delete: the record is kept with ``is_active`` false and its seat is released"""
    logger.info(f"Deleting enrollment with ID: {enrollment_id}")
    enrollment = get_enrollment(session, enrollment_id)
    course = session.get(Course, enrollment.course_id)
    was_counted = course is not None and occupies_seat(
        course, enrollment.semester, enrollment.year, enrollment.status, enrollment.is_active)

    enrollment.is_active = False
    enrollment.updated_at = utcnow()
    session.add(enrollment)
    if was_counted:
        _release_seat(session, course.id)
    session.commit()
    session.refresh(enrollment)

    logger.info(f"Enrollment soft-deleted: {enrollment_id}")
    if activity:
        student = enrollment.student
        name = f"{student.first_name} {student.last_name}" if student else f"student {enrollment.student_id}"
        title = course.title if course else f"course {enrollment.course_id}"
        activity.emit(
            "Enrollment Deleted", EntityType.ENROLLMENT, enrollment.id,
            f'Enrollment for "{name}" in "{title}" deleted (soft delete).', color="red",
        )
    return enrollment


def reconcile_enrollment_counts(session: Session, course_id: Optional[int] = None) -> List[dict]:
    """Recompute ``Course.enrolled`` from the enrollment records.

    Returns one entry per examined course with the previous and corrected
    counter values.
    """
    if course_id is not None:
        course = session.get(Course, course_id)
        if not course:
            raise NotFoundError("Course")
        courses = [course]
    else:
        courses = list(session.exec(select(Course).order_by(Course.id)).all())

    results = []
    for course in courses:
        _lock_course(session, course.id, 0)
        session.refresh(course)
        actual = count_occupancy(session, course.id, course.semester, course.year)
        previous = course.enrolled
        if previous != actual:
            logger.warning(f"Course {course.code} enrolled counter drifted: {previous} -> {actual}")
            course.enrolled = actual
            session.add(course)
        results.append({
            "course_id": course.id,
            "code": course.code,
            "previous": previous,
            "enrolled": actual,
            "changed": previous != actual,
        })
    session.commit()
    logger.info(f"Reconciled enrolled counters for {len(results)} course(s)")
    return results
