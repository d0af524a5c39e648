from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, Index, UniqueConstraint
from typing import Optional
from datetime import date, datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Semester(str, Enum):
    FALL = "Fall"
    SPRING = "Spring"
    SUMMER = "Summer"


class YearLevel(str, Enum):
    FRESHMAN = "Freshman"
    SOPHOMORE = "Sophomore"
    JUNIOR = "Junior"
    SENIOR = "Senior"
    GRADUATE = "Graduate"


class EnrollmentStatus(str, Enum):
    ENROLLED = "Enrolled"
    DROPPED = "Dropped"
    COMPLETED = "Completed"
    WITHDRAWN = "Withdrawn"


class Grade(str, Enum):
    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"
    C_PLUS = "C+"
    C = "C"
    C_MINUS = "C-"
    D_PLUS = "D+"
    D = "D"
    D_MINUS = "D-"
    F = "F"
    W = "W"
    I = "I"  # noqa: E741
    P = "P"
    NP = "NP"


class EntityType(str, Enum):
    COURSE = "Course"
    STUDENT = "Student"
    ENROLLMENT = "Enrollment"
    USER = "User"


class Course(SQLModel, table=True):
    """Course offering; ``enrolled`` is maintained by the enrollment service only"""
    __table_args__ = (Index("ix_course_code_semester_year", "code", "semester", "year"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(unique=True, max_length=10)
    title: str = Field(index=True, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    credits: int = Field(ge=1, le=6)
    instructor: str
    capacity: int = Field(default=30, ge=1)
    enrolled: int = Field(default=0, ge=0)
    semester: str = Field(index=True)
    year: int = Field(ge=2020)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Student(SQLModel, table=True):
    """Student model for database"""
    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: str = Field(unique=True, index=True, max_length=10)
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    email: str = Field(unique=True, index=True)
    phone: Optional[str] = Field(default=None)
    date_of_birth: date
    major: str = Field(index=True)
    year_level: str
    gpa: float = Field(default=0.0, ge=0.0, le=4.0)
    total_credits: int = Field(default=0, ge=0)
    is_active: bool = Field(default=True)
    address: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Enrollment(SQLModel, table=True):
    """Enrollment linking one student to one course offering"""
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", "semester", "year", name="uq_enrollment_offering"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key="student.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    semester: str
    year: int = Field(ge=2020)
    enrollment_date: datetime = Field(default_factory=utcnow)
    status: str = Field(default=EnrollmentStatus.ENROLLED.value, index=True)
    grade: Optional[str] = Field(default=None, max_length=2)
    grade_points: Optional[float] = Field(default=None, ge=0, le=4)
    attendance: int = Field(default=0, ge=0)
    total_classes: int = Field(default=0, ge=0)
    comments: Optional[str] = Field(default=None, max_length=500)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    student: Optional[Student] = Relationship()
    course: Optional[Course] = Relationship()


class Activity(SQLModel, table=True):
    """Append-only record of a mutation, shown in the recent activity feed"""
    id: Optional[int] = Field(default=None, primary_key=True)
    action: str
    entity_type: str
    entity_id: int
    message: str
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    color: str = Field(default="blue")
