"""Populate the database with demo courses, students and enrollments.

Usage: ``python seed.py``. Existing rows in all tables are deleted first.
"""

import logging
import sys
from datetime import date

from sqlalchemy import delete
from sqlmodel import Session

from enrollment_service import create_enrollment
from models import Activity, Course, Enrollment, Student
from schemas import EnrollmentCreate

logger = logging.getLogger(__name__)

COURSES = [
    dict(code="CS101", title="Introduction to Computer Science",
         description="Fundamental concepts of computer science and programming",
         credits=3, instructor="Dr. Alice Smith", capacity=30, semester="Fall", year=2024),
    dict(code="MATH201", title="Calculus I", description="Differential and integral calculus",
         credits=4, instructor="Dr. Bob Johnson", capacity=35, semester="Fall", year=2024),
    dict(code="ENG101", title="English Composition", description="Academic writing and critical thinking",
         credits=3, instructor="Prof. Carol Davis", capacity=25, semester="Fall", year=2024),
    dict(code="PHYS101", title="Physics Fundamentals", description="Basic principles of physics and mechanics",
         credits=4, instructor="Dr. David Wilson", capacity=30, semester="Spring", year=2025),
    dict(code="CHEM101", title="General Chemistry",
         description="Introduction to chemical principles and laboratory techniques",
         credits=4, instructor="Dr. Emily Brown", capacity=28, semester="Summer", year=2025),
]

STUDENTS = [
    dict(student_id="STU001", first_name="John", last_name="Doe", email="john.doe@example.com",
         phone="1112223333", date_of_birth=date(2002, 1, 15), major="Computer Science",
         year_level="Sophomore", gpa=3.8, total_credits=30),
    dict(student_id="STU002", first_name="Jane", last_name="Smith", email="jane.smith@example.com",
         phone="4445556666", date_of_birth=date(2001, 5, 20), major="Mathematics",
         year_level="Junior", gpa=3.9, total_credits=60),
    dict(student_id="STU003", first_name="Peter", last_name="Jones", email="peter.jones@example.com",
         phone="7778889999", date_of_birth=date(2003, 9, 10), major="Physics",
         year_level="Freshman", gpa=3.5, total_credits=15),
]

# (student index, course index, grade)
ENROLLMENTS = [
    (0, 0, "A"),
    (1, 0, "B+"),
    (0, 1, "A-"),
]


def seed_database(session: Session) -> None:
    logger.info("Clearing existing data...")
    for model in (Activity, Enrollment, Student, Course):
        session.connection().execute(delete(model))
    session.commit()
    # Bulk deletes bypass the identity map; drop the stale instances
    session.expunge_all()

    courses = [Course(**data) for data in COURSES]
    students = [Student(**data) for data in STUDENTS]
    session.add_all(courses + students)
    session.commit()
    for row in courses + students:
        session.refresh(row)
    logger.info(f"Seeded {len(courses)} courses and {len(students)} students")

    for student_index, course_index, grade in ENROLLMENTS:
        course = courses[course_index]
        create_enrollment(session, EnrollmentCreate(
            student_id=students[student_index].id,
            course_id=course.id,
            semester=course.semester,
            year=course.year,
            grade=grade,
        ))
    logger.info(f"Seeded {len(ENROLLMENTS)} enrollments")


if __name__ == "__main__":
    from database import create_db_and_tables, engine

    logging.basicConfig(level=logging.INFO, stream=sys.stdout,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    create_db_and_tables()
    with Session(engine) as session:
        seed_database(session)
    logger.info("Database seeded successfully")
