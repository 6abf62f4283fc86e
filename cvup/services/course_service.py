import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..models import Certificate, Course, CourseContent, CourseEnrollment, CourseProgress, now

logger = logging.getLogger(__name__)


def get_course_or_404(db: Session, course_id: str) -> Course:
    course = db.get(Course, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def list_courses(db: Session, published: Optional[bool] = None, category: Optional[str] = None,
                 level: Optional[str] = None, instructor_id: Optional[str] = None) -> List[Course]:
    query = db.query(Course)
    if published is not None:
        query = query.filter(Course.is_published == published)
    if category:
        query = query.filter(Course.category == category)
    if level:
        query = query.filter(Course.level == level)
    if instructor_id:
        query = query.filter(Course.instructor_id == instructor_id)
    return query.order_by(Course.created_at.desc()).all()


def create_course(db: Session, payload: schemas.CourseCreate) -> Course:
    course = Course(**payload.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info("Created course %s", course.id)
    return course


def update_course(db: Session, course_id: str, payload: schemas.CourseUpdate) -> Course:
    course = get_course_or_404(db, course_id)
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    for key, value in updates.items():
        setattr(course, key, value)
    db.commit()
    db.refresh(course)
    return course


def delete_course(db: Session, course_id: str) -> None:
    course = get_course_or_404(db, course_id)
    db.delete(course)
    db.commit()


# --- Content -----------------------------------------------------------------

def list_content(db: Session, course_id: str) -> List[CourseContent]:
    get_course_or_404(db, course_id)
    return (
        db.query(CourseContent)
        .filter(CourseContent.course_id == course_id)
        .order_by(CourseContent.sequence_order)
        .all()
    )


def get_content_or_404(db: Session, course_id: str, content_id: str) -> CourseContent:
    content = db.get(CourseContent, content_id)
    if not content or content.course_id != course_id:
        raise HTTPException(status_code=404, detail="Content not found")
    return content


def create_content(db: Session, course_id: str, payload: schemas.ContentCreate) -> CourseContent:
    get_course_or_404(db, course_id)
    content = CourseContent(course_id=course_id, **payload.model_dump())
    db.add(content)
    db.commit()
    db.refresh(content)
    return content


def update_content(db: Session, course_id: str, content_id: str, payload: schemas.ContentUpdate) -> CourseContent:
    content = get_content_or_404(db, course_id, content_id)
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    for key, value in updates.items():
        setattr(content, key, value)
    db.commit()
    db.refresh(content)
    return content


def delete_content(db: Session, course_id: str, content_id: str) -> None:
    content = get_content_or_404(db, course_id, content_id)
    db.query(CourseProgress).filter(CourseProgress.content_id == content_id).delete()
    db.delete(content)
    db.commit()


# --- Enrollment & progress ---------------------------------------------------

def _get_enrollment(db: Session, user_id: str, course_id: str) -> Optional[CourseEnrollment]:
    return (
        db.query(CourseEnrollment)
        .filter(CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course_id)
        .first()
    )


def enroll(db: Session, course_id: str, user_id: str) -> CourseEnrollment:
    """Enroll a user. Enrolling twice returns the existing row; a dropped enrollment is reactivated."""
    get_course_or_404(db, course_id)
    enrollment = _get_enrollment(db, user_id, course_id)
    if enrollment:
        if enrollment.status == "dropped":
            enrollment.status = "enrolled"
            enrollment.last_accessed_at = now()
            db.commit()
            db.refresh(enrollment)
        return enrollment

    enrollment = CourseEnrollment(user_id=user_id, course_id=course_id, status="enrolled",
                                  progress=0, last_accessed_at=now())
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    logger.info("User %s enrolled in course %s", user_id, course_id)
    return enrollment


def list_enrollments(db: Session, user_id: Optional[str] = None,
                     course_id: Optional[str] = None) -> List[CourseEnrollment]:
    query = db.query(CourseEnrollment)
    if user_id:
        query = query.filter(CourseEnrollment.user_id == user_id)
    if course_id:
        query = query.filter(CourseEnrollment.course_id == course_id)
    return query.order_by(CourseEnrollment.enrollment_date.desc()).all()


def update_enrollment_status(db: Session, enrollment_id: str,
                             payload: schemas.EnrollmentStatusUpdate) -> CourseEnrollment:
    enrollment = db.get(CourseEnrollment, enrollment_id)
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")
    enrollment.status = payload.status
    if payload.status == "completed":
        enrollment.completion_date = payload.completion_date or now()
    elif payload.completion_date:
        enrollment.completion_date = payload.completion_date
    db.commit()
    db.refresh(enrollment)
    return enrollment


def _recompute_course_progress(db: Session, user_id: str, course_id: str) -> Optional[CourseEnrollment]:
    total = db.query(CourseContent).filter(CourseContent.course_id == course_id).count()
    if not total:
        return None
    completed = (
        db.query(CourseProgress)
        .filter(CourseProgress.user_id == user_id, CourseProgress.course_id == course_id,
                CourseProgress.completion_status == "completed")
        .count()
    )
    enrollment = _get_enrollment(db, user_id, course_id)
    if not enrollment:
        return None

    enrollment.progress = round(completed / total * 100)
    enrollment.last_accessed_at = now()
    if enrollment.progress >= 100:
        enrollment.status = "completed"
        enrollment.completion_date = enrollment.completion_date or now()
    elif enrollment.status == "enrolled" and enrollment.progress > 0:
        enrollment.status = "in-progress"
    return enrollment


def track_content_progress(db: Session, course_id: str, content_id: str,
                           payload: schemas.ProgressUpdate) -> CourseProgress:
    get_content_or_404(db, course_id, content_id)
    progress = (
        db.query(CourseProgress)
        .filter(CourseProgress.user_id == payload.user_id, CourseProgress.content_id == content_id)
        .first()
    )
    if progress is None:
        progress = CourseProgress(user_id=payload.user_id, course_id=course_id, content_id=content_id,
                                  completion_status="not_started", progress=0, last_position=0)
        db.add(progress)

    if payload.progress is not None:
        progress.progress = payload.progress
    if payload.last_position is not None:
        progress.last_position = payload.last_position
    if payload.quiz_score is not None:
        progress.quiz_score = payload.quiz_score
    if progress.progress >= 100:
        progress.completion_status = "completed"
    elif payload.completion_status is not None:
        progress.completion_status = payload.completion_status
    elif progress.progress > 0:
        progress.completion_status = "in_progress"
    if progress.completion_status == "completed":
        progress.progress = 100
        progress.completed_at = progress.completed_at or now()

    db.flush()
    _recompute_course_progress(db, payload.user_id, course_id)
    db.commit()
    db.refresh(progress)
    return progress


def get_user_progress(db: Session, course_id: str, user_id: str) -> List[CourseProgress]:
    return (
        db.query(CourseProgress)
        .filter(CourseProgress.user_id == user_id, CourseProgress.course_id == course_id)
        .all()
    )


# --- Certificates ------------------------------------------------------------

def generate_certificate(db: Session, course_id: str, user_id: str,
                         certificate_data: Optional[Dict[str, Any]] = None) -> Certificate:
    course = get_course_or_404(db, course_id)
    existing = (
        db.query(Certificate)
        .filter(Certificate.user_id == user_id, Certificate.course_id == course_id)
        .first()
    )
    if existing:
        return existing

    certificate = Certificate(
        user_id=user_id,
        course_id=course_id,
        certificate_data=certificate_data or {"course_title": course.title, "instructor": course.instructor_name},
        is_valid=True,
    )
    db.add(certificate)
    db.commit()
    db.refresh(certificate)
    logger.info("Issued certificate %s for user %s on course %s", certificate.id, user_id, course_id)
    return certificate


def list_certificates(db: Session, user_id: str) -> List[Certificate]:
    return (
        db.query(Certificate)
        .filter(Certificate.user_id == user_id)
        .order_by(Certificate.issue_date.desc())
        .all()
    )


def get_certificate_or_404(db: Session, certificate_id: str) -> Certificate:
    certificate = db.get(Certificate, certificate_id)
    if not certificate:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return certificate


def update_certificate_url(db: Session, certificate_id: str, url: str) -> Certificate:
    certificate = get_certificate_or_404(db, certificate_id)
    certificate.certificate_url = url
    db.commit()
    db.refresh(certificate)
    return certificate
