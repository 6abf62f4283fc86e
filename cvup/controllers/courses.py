from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import course_service

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("/", response_model=List[schemas.CourseOut])
def list_courses(
    published: Optional[bool] = None,
    category: Optional[str] = None,
    level: Optional[str] = None,
    instructor_id: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return course_service.list_courses(db, published, category, level, instructor_id)


@router.post("/", response_model=schemas.CourseOut, status_code=201)
def create_course(payload: schemas.CourseCreate, db: Session = Depends(get_db)):
    return course_service.create_course(db, payload)


@router.get("/enrollments", response_model=List[schemas.EnrollmentOut])
def list_enrollments(user_id: Optional[str] = None, course_id: Optional[str] = None,
                     db: Session = Depends(get_db)):
    return course_service.list_enrollments(db, user_id, course_id)


@router.patch("/enrollments/{enrollment_id}", response_model=schemas.EnrollmentOut)
def update_enrollment_status(enrollment_id: str, payload: schemas.EnrollmentStatusUpdate,
                             db: Session = Depends(get_db)):
    return course_service.update_enrollment_status(db, enrollment_id, payload)


@router.get("/certificates", response_model=List[schemas.CertificateOut])
def list_certificates(user_id: str, db: Session = Depends(get_db)):
    return course_service.list_certificates(db, user_id)


@router.get("/certificates/{certificate_id}", response_model=schemas.CertificateOut)
def get_certificate(certificate_id: str, db: Session = Depends(get_db)):
    return course_service.get_certificate_or_404(db, certificate_id)


@router.patch("/certificates/{certificate_id}", response_model=schemas.CertificateOut)
def update_certificate_url(certificate_id: str, payload: schemas.CertificateUrlUpdate,
                           db: Session = Depends(get_db)):
    return course_service.update_certificate_url(db, certificate_id, payload.certificate_url)


@router.get("/{course_id}", response_model=schemas.CourseOut)
def get_course(course_id: str, db: Session = Depends(get_db)):
    return course_service.get_course_or_404(db, course_id)


@router.patch("/{course_id}", response_model=schemas.CourseOut)
def update_course(course_id: str, payload: schemas.CourseUpdate, db: Session = Depends(get_db)):
    return course_service.update_course(db, course_id, payload)


@router.delete("/{course_id}", status_code=204)
def delete_course(course_id: str, db: Session = Depends(get_db)):
    course_service.delete_course(db, course_id)


# --- Content ---

@router.get("/{course_id}/content", response_model=List[schemas.ContentOut])
def list_content(course_id: str, db: Session = Depends(get_db)):
    return course_service.list_content(db, course_id)


@router.post("/{course_id}/content", response_model=schemas.ContentOut, status_code=201)
def create_content(course_id: str, payload: schemas.ContentCreate, db: Session = Depends(get_db)):
    return course_service.create_content(db, course_id, payload)


@router.patch("/{course_id}/content/{content_id}", response_model=schemas.ContentOut)
def update_content(course_id: str, content_id: str, payload: schemas.ContentUpdate,
                   db: Session = Depends(get_db)):
    return course_service.update_content(db, course_id, content_id, payload)


@router.delete("/{course_id}/content/{content_id}", status_code=204)
def delete_content(course_id: str, content_id: str, db: Session = Depends(get_db)):
    course_service.delete_content(db, course_id, content_id)


@router.post("/{course_id}/content/{content_id}/progress", response_model=schemas.ProgressOut)
def track_progress(course_id: str, content_id: str, payload: schemas.ProgressUpdate,
                   db: Session = Depends(get_db)):
    """
    Record progress on one content item. The course-level enrollment progress
    is recomputed from completed items.
    """
    return course_service.track_content_progress(db, course_id, content_id, payload)


# --- Enrollment & certificates ---

@router.post("/{course_id}/enroll", response_model=schemas.EnrollmentOut)
def enroll(course_id: str, payload: schemas.EnrollmentCreate, db: Session = Depends(get_db)):
    return course_service.enroll(db, course_id, payload.user_id)


@router.get("/{course_id}/progress", response_model=List[schemas.ProgressOut])
def get_user_progress(course_id: str, user_id: str, db: Session = Depends(get_db)):
    return course_service.get_user_progress(db, course_id, user_id)


@router.post("/{course_id}/certificates", response_model=schemas.CertificateOut)
def generate_certificate(course_id: str, payload: schemas.CertificateCreate, db: Session = Depends(get_db)):
    return course_service.generate_certificate(db, course_id, payload.user_id, payload.certificate_data)
