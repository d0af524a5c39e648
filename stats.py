"""Read-only aggregate summaries over the active records of each store."""

from sqlalchemy import case, func
from sqlmodel import Session, select

from models import Course, Enrollment, EnrollmentStatus, Student


def _avg(value) -> float:
    return round(float(value), 2) if value is not None else 0.0


def _count_if(column, value):
    return func.coalesce(func.sum(case((column == value, 1), else_=0)), 0)


def course_stats(session: Session) -> dict:
    active = Course.is_active == True  # noqa: E712
    total, enrolled, capacity, avg_credits = session.exec(
        select(
            func.count(Course.id),
            func.coalesce(func.sum(Course.enrolled), 0),
            func.coalesce(func.sum(Course.capacity), 0),
            func.avg(Course.credits),
        ).where(active)
    ).one()

    rows = session.exec(
        select(Course.semester, func.count(Course.id), func.coalesce(func.sum(Course.enrolled), 0))
        .where(active)
        .group_by(Course.semester)
    ).all()

    return {
        "overview": {
            "total_courses": total,
            "total_enrolled": enrolled,
            "total_capacity": capacity,
            "avg_credits": _avg(avg_credits),
        },
        "by_semester": {
            semester: {"count": count, "total_enrolled": semester_enrolled}
            for semester, count, semester_enrolled in rows
        },
    }


def student_stats(session: Session) -> dict:
    active = Student.is_active == True  # noqa: E712
    total, avg_gpa = session.exec(
        select(func.count(Student.id), func.avg(Student.gpa)).where(active)
    ).one()

    major_rows = session.exec(
        select(Student.major, func.count(Student.id), func.avg(Student.gpa))
        .where(active)
        .group_by(Student.major)
    ).all()
    level_rows = session.exec(
        select(Student.year_level, func.count(Student.id))
        .where(active)
        .group_by(Student.year_level)
    ).all()

    return {
        "overview": {"total_students": total, "avg_gpa": _avg(avg_gpa)},
        "by_major": {major: {"count": count, "avg_gpa": _avg(gpa)} for major, count, gpa in major_rows},
        "by_year_level": {level: {"count": count} for level, count in level_rows},
    }


def enrollment_stats(session: Session) -> dict:
    active = Enrollment.is_active == True  # noqa: E712
    total, enrolled, completed, dropped = session.exec(
        select(
            func.count(Enrollment.id),
            _count_if(Enrollment.status, EnrollmentStatus.ENROLLED.value),
            _count_if(Enrollment.status, EnrollmentStatus.COMPLETED.value),
            _count_if(Enrollment.status, EnrollmentStatus.DROPPED.value),
        ).where(active)
    ).one()

    semester_rows = session.exec(
        select(
            Enrollment.semester,
            func.count(Enrollment.id),
            _count_if(Enrollment.status, EnrollmentStatus.ENROLLED.value),
        )
        .where(active)
        .group_by(Enrollment.semester)
    ).all()
    status_rows = session.exec(
        select(Enrollment.status, func.count(Enrollment.id))
        .where(active)
        .group_by(Enrollment.status)
    ).all()

    return {
        "overview": {
            "total_enrollments": total,
            "enrolled_count": enrolled,
            "completed_count": completed,
            "dropped_count": dropped,
        },
        "by_semester": {
            semester: {"count": count, "enrolled_count": semester_enrolled}
            for semester, count, semester_enrolled in semester_rows
        },
        "by_status": {status: {"count": count} for status, count in status_rows},
    }
