from pydantic import BaseModel, EmailStr, Field, computed_field, field_validator
from typing import Dict, Generic, List, Optional, TypeVar
from datetime import date, datetime

from models import EnrollmentStatus, EntityType, Grade, Semester, YearLevel

T = TypeVar("T")


def _strip_upper(value):
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


def _not_null(value):
    if value is None:
        raise ValueError("Field cannot be null")
    return value


# Pagination
class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel, Generic[T]):
    """Paginated list envelope"""
    items: List[T]
    pagination: Pagination


class MessageResponse(BaseModel):
    message: str


# Course Schemas
class CourseBase(BaseModel):
    """Base schema for course with common attributes"""
    code: str = Field(..., min_length=2, max_length=10, description="Course code, e.g. CS101")
    title: str = Field(..., min_length=3, max_length=100, description="Course title")
    description: Optional[str] = Field(None, max_length=500, description="Course description")
    credits: int = Field(..., ge=1, le=6, description="Number of credits")
    instructor: str = Field(..., min_length=2, max_length=100, description="Instructor name")
    capacity: int = Field(30, ge=1, description="Seats per offering")
    semester: Semester = Field(..., description="Fall, Spring or Summer")
    year: int = Field(..., ge=2020, description="Academic year")

    normalize_code = field_validator("code", mode="before")(_strip_upper)
    normalize_text = field_validator("title", "description", "instructor", mode="before")(_strip)


class CourseCreate(CourseBase):
    """Schema for creating a new course"""

    class Config:
        use_enum_values = True


class CourseUpdate(BaseModel):
    """Schema for updating a course (all fields optional, enrolled is not writable)"""
    code: Optional[str] = Field(None, min_length=2, max_length=10)
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    credits: Optional[int] = Field(None, ge=1, le=6)
    instructor: Optional[str] = Field(None, min_length=2, max_length=100)
    capacity: Optional[int] = Field(None, ge=1)
    semester: Optional[Semester] = None
    year: Optional[int] = Field(None, ge=2020)

    normalize_code = field_validator("code", mode="before")(_strip_upper)
    normalize_text = field_validator("title", "description", "instructor", mode="before")(_strip)
    required = field_validator(
        "code", "title", "credits", "instructor", "capacity", "semester", "year"
    )(_not_null)

    class Config:
        use_enum_values = True


class CourseResponse(CourseBase):
    """Schema for course response"""
    id: int
    enrolled: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def available_seats(self) -> int:
        return self.capacity - self.enrolled

    class Config:
        from_attributes = True


class CourseSummary(BaseModel):
    id: int
    code: str
    title: str
    credits: int
    instructor: str

    class Config:
        from_attributes = True


# Student Schemas
class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class StudentBase(BaseModel):
    """Base schema for student with common attributes"""
    student_id: str = Field(..., min_length=3, max_length=10, description="Institution student ID")
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr = Field(..., description="Student's email address")
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{0,15}$")
    date_of_birth: date
    major: str = Field(..., min_length=2, max_length=100)
    year_level: YearLevel
    gpa: float = Field(0.0, ge=0.0, le=4.0)
    total_credits: int = Field(0, ge=0)
    address: Optional[Address] = None

    normalize_student_id = field_validator("student_id", mode="before")(_strip_upper)
    normalize_text = field_validator("first_name", "last_name", "major", "phone", mode="before")(_strip)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()


class StudentCreate(StudentBase):
    """Schema for creating a new student"""

    class Config:
        use_enum_values = True


class StudentUpdate(BaseModel):
    """Schema for updating a student (all fields optional)"""
    student_id: Optional[str] = Field(None, min_length=3, max_length=10)
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{0,15}$")
    date_of_birth: Optional[date] = None
    major: Optional[str] = Field(None, min_length=2, max_length=100)
    year_level: Optional[YearLevel] = None
    gpa: Optional[float] = Field(None, ge=0.0, le=4.0)
    total_credits: Optional[int] = Field(None, ge=0)
    address: Optional[Address] = None

    normalize_student_id = field_validator("student_id", mode="before")(_strip_upper)
    normalize_text = field_validator("first_name", "last_name", "major", "phone", mode="before")(_strip)
    required = field_validator(
        "student_id", "first_name", "last_name", "email", "date_of_birth", "major", "year_level", "gpa",
        "total_credits"
    )(_not_null)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    class Config:
        use_enum_values = True


class StudentResponse(StudentBase):
    """Schema for student response"""
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    class Config:
        from_attributes = True


class StudentSummary(BaseModel):
    id: int
    student_id: str
    first_name: str
    last_name: str
    email: str

    class Config:
        from_attributes = True


# Enrollment Schemas
class EnrollmentBase(BaseModel):
    """Base schema for enrollment with common attributes"""
    student_id: int = Field(..., description="Student ID")
    course_id: int = Field(..., description="Course ID")
    semester: Semester
    year: int = Field(..., ge=2020)
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    grade: Optional[Grade] = None
    attendance: int = Field(0, ge=0)
    total_classes: int = Field(0, ge=0)
    comments: Optional[str] = Field(None, max_length=500)


class EnrollmentCreate(EnrollmentBase):
    """Schema for creating a new enrollment"""

    class Config:
        use_enum_values = True
        validate_default = True


class EnrollmentUpdate(EnrollmentBase):
    """Full replacement payload for an enrollment"""

    class Config:
        use_enum_values = True
        validate_default = True


class GradeUpdate(BaseModel):
    """Schema for recording a grade"""
    grade: Grade
    comments: Optional[str] = Field(None, max_length=500)

    class Config:
        use_enum_values = True


class EnrollmentResponse(EnrollmentBase):
    """Schema for enrollment response with student and course summaries"""
    id: int
    enrollment_date: datetime
    grade_points: Optional[float] = None
    is_active: bool
    student: Optional[StudentSummary] = None
    course: Optional[CourseSummary] = None

    @computed_field
    @property
    def attendance_percentage(self) -> int:
        return attendance_percentage(self.attendance, self.total_classes)

    class Config:
        from_attributes = True


def attendance_percentage(attendance: int, total_classes: int) -> int:
    """Attendance as a whole percentage, halves rounded up"""
    if total_classes == 0:
        return 0
    return (200 * attendance + total_classes) // (2 * total_classes)


class ReconcileResult(BaseModel):
    """Outcome of recomputing one course's enrolled counter"""
    course_id: int
    code: str
    previous: int
    enrolled: int
    changed: bool


# Activity Schemas
class ActivityResponse(BaseModel):
    id: int
    action: str
    entity_type: EntityType
    entity_id: int
    message: str
    timestamp: datetime
    color: str

    class Config:
        from_attributes = True


class ActivityFeed(BaseModel):
    items: List[ActivityResponse]


# Statistics Schemas
class CourseOverview(BaseModel):
    total_courses: int = 0
    total_enrolled: int = 0
    total_capacity: int = 0
    avg_credits: float = 0.0


class CourseSemesterGroup(BaseModel):
    count: int
    total_enrolled: int


class CourseStats(BaseModel):
    overview: CourseOverview
    by_semester: Dict[str, CourseSemesterGroup]


class StudentOverview(BaseModel):
    total_students: int = 0
    avg_gpa: float = 0.0


class MajorGroup(BaseModel):
    count: int
    avg_gpa: float


class CountGroup(BaseModel):
    count: int


class StudentStats(BaseModel):
    overview: StudentOverview
    by_major: Dict[str, MajorGroup]
    by_year_level: Dict[str, CountGroup]


class EnrollmentOverview(BaseModel):
    total_enrollments: int = 0
    enrolled_count: int = 0
    completed_count: int = 0
    dropped_count: int = 0


class EnrollmentSemesterGroup(BaseModel):
    count: int
    enrolled_count: int


class EnrollmentStats(BaseModel):
    overview: EnrollmentOverview
    by_semester: Dict[str, EnrollmentSemesterGroup]
    by_status: Dict[str, CountGroup]


# Auth Schemas
class LoginRequest(BaseModel):
    username: str
    password: str


class UserInfo(BaseModel):
    id: str
    username: str
    role: str


class LoginResponse(BaseModel):
    success: bool
    message: str
    token: str
    user: UserInfo
