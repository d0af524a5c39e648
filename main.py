from fastapi import FastAPI, HTTPException, Depends, status, Request, Query, BackgroundTasks
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session, select, col
from typing import List, Optional
import logging
import sys
from sqlalchemy import func, or_, text
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

import enrollment_service
import stats
from activity import ActivityLog, recent_activities
from config import get_settings
from database import create_db_and_tables, get_session, paginate
from errors import AppError, ConflictError, InternalError, NotFoundError, ValidationError, field_errors
from models import Course, Enrollment, EntityType, Student, utcnow
from schemas import (
    StudentCreate, StudentUpdate, StudentResponse,
    CourseCreate, CourseUpdate, CourseResponse,
    EnrollmentCreate, EnrollmentUpdate, EnrollmentResponse, GradeUpdate,
    ActivityFeed, CourseStats, StudentStats, EnrollmentStats,
    LoginRequest, LoginResponse, MessageResponse, Page, ReconcileResult,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(settings.log_file)
    ]
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Course Management API",
    description="University course management: courses, students, enrollments and an activity feed",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Report expected business errors with their code"""
    if isinstance(exc, InternalError):
        logger.error(f"Internal error on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Turn request validation failures into field-level 400 responses"""
    error = ValidationError(field_errors(exc.errors()))
    logger.warning(f"Validation failed on {request.method} {request.url.path}: {error.errors}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle database-related errors"""
    logger.error(f"Database error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "A database error occurred. Please try again later.", "code": "InternalError"}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please contact support.", "code": "InternalError"}
    )


@app.on_event("startup")
def on_startup():
    """Create database tables on startup"""
    try:
        logger.info("Starting application...")
        create_db_and_tables()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {str(e)}", exc_info=True)
        raise


def get_activity_log(background_tasks: BackgroundTasks, session: Session = Depends(get_session)) -> ActivityLog:
    """Activity writes run after the response, on the request's database"""
    return ActivityLog(session.get_bind(), schedule=background_tasks.add_task)


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    return page, limit


@app.get("/", tags=["Root"])
async def read_root():
    """Root endpoint"""
    logger.info("Root endpoint accessed")
    return {
        "message": "Welcome to Course Management API",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health", tags=["Root"])
def health(session: Session = Depends(get_session)):
    """Report API and database status"""
    try:
        session.connection().execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {str(e)}")
        database = "unavailable"
    return {
        "status": "OK" if database == "connected" else "DEGRADED",
        "message": "Course Management API is running",
        "database": database,
    }


# ============= AUTH ENDPOINTS =============

@app.post("/auth/login", response_model=LoginResponse, tags=["Auth"])
def login(credentials: LoginRequest):
    """Mock admin login returning the configured demo token"""
    if (credentials.username == settings.admin_username
            and credentials.password == settings.admin_password.get_secret_value()):
        logger.info(f"Login succeeded for {credentials.username}")
        return {
            "success": True,
            "message": "Login successful",
            "token": settings.demo_token,
            "user": {"id": "admin-1", "username": settings.admin_username, "role": "admin"},
        }
    logger.warning(f"Login failed for {credentials.username}")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials"
    )


@app.post("/auth/logout", tags=["Auth"])
def logout():
    """Logout is handled client side by discarding the token"""
    return {"success": True, "message": "Logout successful"}


# ============= STUDENT ENDPOINTS =============

def _student_conflict(session: Session, student_id: Optional[str], email: Optional[str],
                      exclude_id: Optional[int] = None):
    if student_id:
        statement = select(Student).where(Student.student_id == student_id)
        if exclude_id is not None:
            statement = statement.where(Student.id != exclude_id)
        if session.exec(statement).first():
            logger.warning(f"Attempted to use existing student ID: {student_id}")
            raise ConflictError("Student ID already exists", code="DuplicateStudentId")
    if email:
        statement = select(Student).where(Student.email == email)
        if exclude_id is not None:
            statement = statement.where(Student.id != exclude_id)
        if session.exec(statement).first():
            logger.warning(f"Attempted to use existing email: {email}")
            raise ConflictError("Email already registered", code="DuplicateEmail")


@app.post("/students/", response_model=StudentResponse, status_code=status.HTTP_201_CREATED, tags=["Students"])
def create_student(student: StudentCreate, session: Session = Depends(get_session),
                   activity: ActivityLog = Depends(get_activity_log)):
    """Create a new student"""
    try:
        logger.info(f"Creating student {student.student_id} with email: {student.email}")
        _student_conflict(session, student.student_id, student.email)

        db_student = Student(**student.model_dump())
        session.add(db_student)
        session.commit()
        session.refresh(db_student)

        logger.info(f"Student created successfully with ID: {db_student.id}")
        activity.emit(
            "Student Created", EntityType.STUDENT, db_student.id,
            f'New student "{db_student.first_name} {db_student.last_name}" ({db_student.student_id}) created.'
        )
        return db_student
    except AppError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error creating student: {str(e)}")
        session.rollback()
        _student_conflict(session, student.student_id, student.email)
        raise InternalError("An error occurred while creating the student")
    except Exception as e:
        logger.error(f"Error creating student: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while creating the student")


@app.get("/students/", response_model=Page[StudentResponse], tags=["Students"])
def read_students(
    major: Optional[str] = None,
    year_level: Optional[str] = None,
    search: Optional[str] = None,
    paging: tuple = Depends(page_params),
    session: Session = Depends(get_session),
):
    """List active students with pagination and filters"""
    page, limit = paging
    try:
        logger.info(f"Fetching students page={page}, limit={limit}")
        statement = select(Student).where(Student.is_active == True)  # noqa: E712
        if major:
            statement = statement.where(func.lower(Student.major) == major.lower())
        if year_level:
            statement = statement.where(Student.year_level == year_level)
        if search:
            pattern = f"%{search}%"
            statement = statement.where(or_(
                col(Student.student_id).ilike(pattern),
                col(Student.first_name).ilike(pattern),
                col(Student.last_name).ilike(pattern),
                col(Student.email).ilike(pattern),
            ))
        statement = statement.order_by(col(Student.created_at).desc(), col(Student.id).desc())
        students, pagination = paginate(session, statement, page, limit)
        logger.info(f"Retrieved {len(students)} students")
        return {"items": students, "pagination": pagination}
    except Exception as e:
        logger.error(f"Error fetching students: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while fetching students")


@app.get("/students/stats/overview", response_model=StudentStats, tags=["Students"])
def read_student_stats(session: Session = Depends(get_session)):
    """Student counts by major and year level"""
    try:
        return stats.student_stats(session)
    except Exception as e:
        logger.error(f"Error computing student statistics: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while computing student statistics")


@app.get("/students/{student_id}", response_model=StudentResponse, tags=["Students"])
def read_student(student_id: int, session: Session = Depends(get_session)):
    """Get a specific student by ID"""
    logger.info(f"Fetching student with ID: {student_id}")
    student = session.get(Student, student_id)
    if not student:
        logger.warning(f"Student not found with ID: {student_id}")
        raise NotFoundError("Student")
    return student


@app.put("/students/{student_id}", response_model=StudentResponse, tags=["Students"])
def update_student(student_id: int, student_update: StudentUpdate, session: Session = Depends(get_session),
                   activity: ActivityLog = Depends(get_activity_log)):
    """Update a student's information"""
    try:
        logger.info(f"Updating student with ID: {student_id}")
        db_student = session.get(Student, student_id)
        if not db_student:
            logger.warning(f"Student not found for update with ID: {student_id}")
            raise NotFoundError("Student")

        update_data = student_update.model_dump(exclude_unset=True)
        _student_conflict(session, update_data.get("student_id"), update_data.get("email"), exclude_id=student_id)

        for key, value in update_data.items():
            setattr(db_student, key, value)

        db_student.updated_at = utcnow()
        session.add(db_student)
        session.commit()
        session.refresh(db_student)

        logger.info(f"Student updated successfully: {db_student.id}")
        activity.emit(
            "Student Updated", EntityType.STUDENT, db_student.id,
            f'Student "{db_student.first_name} {db_student.last_name}" ({db_student.student_id}) updated.'
        )
        return db_student
    except AppError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error updating student: {str(e)}")
        session.rollback()
        _student_conflict(session, student_update.student_id, student_update.email, exclude_id=student_id)
        raise InternalError("An error occurred while updating the student")
    except Exception as e:
        logger.error(f"Error updating student {student_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while updating the student")


@app.delete("/students/{student_id}", response_model=MessageResponse, tags=["Students"])
def delete_student(student_id: int, session: Session = Depends(get_session),
                   activity: ActivityLog = Depends(get_activity_log)):
    """Soft delete a student"""
    try:
        logger.info(f"Deleting student with ID: {student_id}")
        student = session.get(Student, student_id)
        if not student:
            logger.warning(f"Student not found for deletion with ID: {student_id}")
            raise NotFoundError("Student")

        student.is_active = False
        student.updated_at = utcnow()
        session.add(student)
        session.commit()
        logger.info(f"Student soft-deleted: {student_id}")
        activity.emit(
            "Student Deleted", EntityType.STUDENT, student.id,
            f'Student "{student.first_name} {student.last_name}" ({student.student_id}) deleted (soft delete).',
            color="red"
        )
        return {"message": "Student deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting student {student_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while deleting the student")


@app.get("/students/{student_id}/enrollments", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_student_enrollments(student_id: int, session: Session = Depends(get_session)):
    """Get all active enrollments for a specific student"""
    logger.info(f"Fetching enrollments for student: {student_id}")
    if not session.get(Student, student_id):
        logger.warning(f"Student not found: {student_id}")
        raise NotFoundError("Student")

    enrollments = session.exec(
        select(Enrollment)
        .where(Enrollment.student_id == student_id, Enrollment.is_active == True)  # noqa: E712
        .order_by(col(Enrollment.enrollment_date).desc())
    ).all()
    logger.info(f"Retrieved {len(enrollments)} enrollments for student {student_id}")
    return enrollments


# ============= COURSE ENDPOINTS =============

def _course_code_conflict(session: Session, code: Optional[str], exclude_id: Optional[int] = None):
    if not code:
        return
    statement = select(Course).where(Course.code == code)
    if exclude_id is not None:
        statement = statement.where(Course.id != exclude_id)
    if session.exec(statement).first():
        logger.warning(f"Attempted to use existing course code: {code}")
        raise ConflictError("Course code already exists", code="DuplicateCourseCode")


@app.post("/courses/", response_model=CourseResponse, status_code=status.HTTP_201_CREATED, tags=["Courses"])
def create_course(course: CourseCreate, session: Session = Depends(get_session),
                  activity: ActivityLog = Depends(get_activity_log)):
    """Create a new course"""
    try:
        logger.info(f"Creating course: {course.code} {course.title}")
        _course_code_conflict(session, course.code)

        db_course = Course(**course.model_dump())
        session.add(db_course)
        session.commit()
        session.refresh(db_course)

        logger.info(f"Course created successfully with ID: {db_course.id}")
        activity.emit(
            "Course Created", EntityType.COURSE, db_course.id,
            f'New course "{db_course.title}" ({db_course.code}) created.'
        )
        return db_course
    except AppError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error creating course: {str(e)}")
        session.rollback()
        _course_code_conflict(session, course.code)
        raise InternalError("An error occurred while creating the course")
    except Exception as e:
        logger.error(f"Error creating course: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while creating the course")


@app.get("/courses/", response_model=Page[CourseResponse], tags=["Courses"])
def read_courses(
    semester: Optional[str] = None,
    year: Optional[int] = None,
    instructor: Optional[str] = None,
    search: Optional[str] = None,
    paging: tuple = Depends(page_params),
    session: Session = Depends(get_session),
):
    """List active courses with pagination and filters"""
    page, limit = paging
    try:
        logger.info(f"Fetching courses page={page}, limit={limit}")
        statement = select(Course).where(Course.is_active == True)  # noqa: E712
        if semester:
            statement = statement.where(Course.semester == semester)
        if year:
            statement = statement.where(Course.year == year)
        if instructor:
            statement = statement.where(col(Course.instructor).ilike(f"%{instructor}%"))
        if search:
            pattern = f"%{search}%"
            statement = statement.where(or_(col(Course.code).ilike(pattern), col(Course.title).ilike(pattern)))
        statement = statement.order_by(col(Course.created_at).desc(), col(Course.id).desc())
        courses, pagination = paginate(session, statement, page, limit)
        logger.info(f"Retrieved {len(courses)} courses")
        return {"items": courses, "pagination": pagination}
    except Exception as e:
        logger.error(f"Error fetching courses: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while fetching courses")


@app.get("/courses/stats/overview", response_model=CourseStats, tags=["Courses"])
def read_course_stats(session: Session = Depends(get_session)):
    """Course totals and counts by semester"""
    try:
        return stats.course_stats(session)
    except Exception as e:
        logger.error(f"Error computing course statistics: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while computing course statistics")


@app.post("/courses/reconcile", response_model=List[ReconcileResult], tags=["Courses"])
def reconcile_courses(session: Session = Depends(get_session)):
    """Recompute every course's enrolled counter from its enrollments"""
    try:
        return enrollment_service.reconcile_enrollment_counts(session)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error reconciling enrollment counts: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while reconciling enrollment counts")


@app.get("/courses/{course_id}", response_model=CourseResponse, tags=["Courses"])
def read_course(course_id: int, session: Session = Depends(get_session)):
    """Get a specific course by ID"""
    logger.info(f"Fetching course with ID: {course_id}")
    course = session.get(Course, course_id)
    if not course:
        logger.warning(f"Course not found with ID: {course_id}")
        raise NotFoundError("Course")
    return course


@app.put("/courses/{course_id}", response_model=CourseResponse, tags=["Courses"])
def update_course(course_id: int, course_update: CourseUpdate, session: Session = Depends(get_session),
                  activity: ActivityLog = Depends(get_activity_log)):
    """Update a course's information"""
    try:
        logger.info(f"Updating course with ID: {course_id}")
        db_course = session.get(Course, course_id)
        if not db_course:
            logger.warning(f"Course not found for update with ID: {course_id}")
            raise NotFoundError("Course")

        update_data = course_update.model_dump(exclude_unset=True)
        _course_code_conflict(session, update_data.get("code"), exclude_id=course_id)
        if update_data.keys() & {"capacity", "semester", "year"}:
            enrollment_service.ensure_capacity_covers(
                session, course_id,
                update_data.get("capacity", db_course.capacity),
                update_data.get("semester", db_course.semester),
                update_data.get("year", db_course.year),
            )

        offering_changed = any(
            key in update_data and update_data[key] != getattr(db_course, key) for key in ("semester", "year")
        )
        for key, value in update_data.items():
            setattr(db_course, key, value)

        db_course.updated_at = utcnow()
        session.add(db_course)
        session.commit()
        if offering_changed:
            # The counter tracks the course's own offering, which just moved
            enrollment_service.reconcile_enrollment_counts(session, course_id)
        session.refresh(db_course)

        logger.info(f"Course updated successfully: {db_course.id}")
        activity.emit(
            "Course Updated", EntityType.COURSE, db_course.id,
            f'Course "{db_course.title}" ({db_course.code}) updated.'
        )
        return db_course
    except AppError:
        raise
    except IntegrityError as e:
        logger.error(f"Integrity error updating course: {str(e)}")
        session.rollback()
        _course_code_conflict(session, course_update.code, exclude_id=course_id)
        raise InternalError("An error occurred while updating the course")
    except Exception as e:
        logger.error(f"Error updating course {course_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while updating the course")


@app.delete("/courses/{course_id}", response_model=MessageResponse, tags=["Courses"])
def delete_course(course_id: int, session: Session = Depends(get_session),
                  activity: ActivityLog = Depends(get_activity_log)):
    """Soft delete a course"""
    try:
        logger.info(f"Deleting course with ID: {course_id}")
        course = session.get(Course, course_id)
        if not course:
            logger.warning(f"Course not found for deletion with ID: {course_id}")
            raise NotFoundError("Course")

        course.is_active = False
        course.updated_at = utcnow()
        session.add(course)
        session.commit()
        logger.info(f"Course soft-deleted: {course_id}")
        activity.emit(
            "Course Deleted", EntityType.COURSE, course.id,
            f'Course "{course.title}" ({course.code}) deleted (soft delete).',
            color="red"
        )
        return {"message": "Course deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting course {course_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while deleting the course")


@app.post("/courses/{course_id}/reconcile", response_model=ReconcileResult, tags=["Courses"])
def reconcile_course(course_id: int, session: Session = Depends(get_session)):
    """Recompute one course's enrolled counter"""
    try:
        return enrollment_service.reconcile_enrollment_counts(session, course_id)[0]
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error reconciling course {course_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while reconciling the course")


@app.get("/courses/{course_id}/enrollments", response_model=List[EnrollmentResponse], tags=["Enrollments"])
def read_course_enrollments(course_id: int, session: Session = Depends(get_session)):
    """Get all active enrollments for a specific course"""
    logger.info(f"Fetching enrollments for course: {course_id}")
    if not session.get(Course, course_id):
        logger.warning(f"Course not found: {course_id}")
        raise NotFoundError("Course")

    enrollments = session.exec(
        select(Enrollment)
        .where(Enrollment.course_id == course_id, Enrollment.is_active == True)  # noqa: E712
        .order_by(col(Enrollment.enrollment_date).desc())
    ).all()
    logger.info(f"Retrieved {len(enrollments)} enrollments for course {course_id}")
    return enrollments


# ============= ENROLLMENT ENDPOINTS =============

@app.post("/enrollments/", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED, tags=["Enrollments"])
def create_enrollment(enrollment: EnrollmentCreate, session: Session = Depends(get_session),
                      activity: ActivityLog = Depends(get_activity_log)):
    """Enroll a student in a course offering"""
    try:
        return enrollment_service.create_enrollment(session, enrollment, activity)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating enrollment: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while creating the enrollment")


@app.get("/enrollments/", response_model=Page[EnrollmentResponse], tags=["Enrollments"])
def read_enrollments(
    status_filter: Optional[str] = Query(None, alias="status"),
    semester: Optional[str] = None,
    year: Optional[int] = None,
    search: Optional[str] = None,
    paging: tuple = Depends(page_params),
    session: Session = Depends(get_session),
):
    """List active enrollments with student and course summaries"""
    page, limit = paging
    try:
        logger.info(f"Fetching enrollments page={page}, limit={limit}")
        enrollments, pagination = enrollment_service.list_enrollments(
            session, page=page, limit=limit, status=status_filter, semester=semester, year=year, search=search
        )
        logger.info(f"Retrieved {len(enrollments)} enrollments")
        return {"items": enrollments, "pagination": pagination}
    except Exception as e:
        logger.error(f"Error fetching enrollments: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while fetching enrollments")


@app.get("/enrollments/stats/overview", response_model=EnrollmentStats, tags=["Enrollments"])
def read_enrollment_stats(session: Session = Depends(get_session)):
    """Enrollment counts by status and semester"""
    try:
        return stats.enrollment_stats(session)
    except Exception as e:
        logger.error(f"Error computing enrollment statistics: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while computing enrollment statistics")


@app.get("/enrollments/{enrollment_id}", response_model=EnrollmentResponse, tags=["Enrollments"])
def read_enrollment(enrollment_id: int, session: Session = Depends(get_session)):
    """Get a specific enrollment by ID"""
    logger.info(f"Fetching enrollment with ID: {enrollment_id}")
    return enrollment_service.get_enrollment(session, enrollment_id)


@app.put("/enrollments/{enrollment_id}", response_model=EnrollmentResponse, tags=["Enrollments"])
def update_enrollment(enrollment_id: int, enrollment_update: EnrollmentUpdate,
                      session: Session = Depends(get_session),
                      activity: ActivityLog = Depends(get_activity_log)):
    """Replace an enrollment's fields"""
    try:
        return enrollment_service.update_enrollment(session, enrollment_id, enrollment_update, activity)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating enrollment {enrollment_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while updating the enrollment")


@app.put("/enrollments/{enrollment_id}/grade", response_model=EnrollmentResponse, tags=["Enrollments"])
def update_enrollment_grade(enrollment_id: int, grade_update: GradeUpdate,
                            session: Session = Depends(get_session),
                            activity: ActivityLog = Depends(get_activity_log)):
    """Record a grade for an enrollment"""
    try:
        return enrollment_service.update_grade(
            session, enrollment_id, grade_update.grade, grade_update.comments, activity
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating grade for enrollment {enrollment_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while updating the grade")


@app.delete("/enrollments/{enrollment_id}", response_model=MessageResponse, tags=["Enrollments"])
def delete_enrollment(enrollment_id: int, session: Session = Depends(get_session),
                      activity: ActivityLog = Depends(get_activity_log)):
    """Soft delete an enrollment (unenroll a student from a course)"""
    try:
        enrollment_service.delete_enrollment(session, enrollment_id, activity)
        return {"message": "Enrollment deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting enrollment {enrollment_id}: {str(e)}", exc_info=True)
        session.rollback()
        raise InternalError("An error occurred while deleting the enrollment")


# ============= ACTIVITY ENDPOINTS =============

@app.get("/activities/", response_model=ActivityFeed, tags=["Activity"])
def read_activities(session: Session = Depends(get_session)):
    """Most recent activity records, newest first"""
    try:
        return {"items": recent_activities(session, settings.activity_feed_limit)}
    except Exception as e:
        logger.error(f"Error fetching activities: {str(e)}", exc_info=True)
        raise InternalError("An error occurred while fetching activities")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
