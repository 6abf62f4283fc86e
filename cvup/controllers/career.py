from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import career_service

cv_router = APIRouter(prefix="/cvs", tags=["cvs"])
linkedin_router = APIRouter(prefix="/linkedin", tags=["linkedin"])
interview_router = APIRouter(prefix="/interviews", tags=["interviews"])


# --- CVs ---

@cv_router.get("/templates", response_model=List[schemas.CVTemplateOut])
def list_templates(category: Optional[str] = None, db: Session = Depends(get_db)):
    return career_service.list_cv_templates(db, category)


@cv_router.get("/templates/{template_id}", response_model=schemas.CVTemplateOut)
def get_template(template_id: str, db: Session = Depends(get_db)):
    return career_service.get_cv_template_or_404(db, template_id)


@cv_router.get("/", response_model=List[schemas.CVOut])
def list_cvs(user_id: str, db: Session = Depends(get_db)):
    return career_service.list_user_cvs(db, user_id)


@cv_router.post("/", response_model=schemas.CVOut, status_code=201)
def create_cv(payload: schemas.CVCreate, db: Session = Depends(get_db)):
    return career_service.create_cv(db, payload)


@cv_router.get("/{cv_id}", response_model=schemas.CVOut)
def get_cv(cv_id: str, db: Session = Depends(get_db)):
    return career_service.get_cv_or_404(db, cv_id)


@cv_router.patch("/{cv_id}", response_model=schemas.CVOut)
def update_cv(cv_id: str, payload: schemas.CVUpdate, db: Session = Depends(get_db)):
    return career_service.update_cv(db, cv_id, payload)


@cv_router.delete("/{cv_id}", status_code=204)
def delete_cv(cv_id: str, db: Session = Depends(get_db)):
    career_service.delete_cv(db, cv_id)


# --- LinkedIn ---

@linkedin_router.get("/profiles/{user_id}", response_model=schemas.LinkedInProfileOut)
def get_linkedin_profile(user_id: str, db: Session = Depends(get_db)):
    return career_service.get_linkedin_profile_or_404(db, user_id)


@linkedin_router.put("/profiles/{user_id}", response_model=schemas.LinkedInProfileOut)
def upsert_linkedin_profile(user_id: str, payload: schemas.LinkedInProfileIn, db: Session = Depends(get_db)):
    return career_service.upsert_linkedin_profile(db, user_id, payload)


@linkedin_router.get("/optimizations", response_model=List[schemas.LinkedInOptimizationOut])
def list_optimizations(category: Optional[str] = None, db: Session = Depends(get_db)):
    return career_service.list_linkedin_optimizations(db, category)


@linkedin_router.get("/content-ideas", response_model=List[schemas.ContentIdeaOut])
def list_content_ideas(category: Optional[str] = None, db: Session = Depends(get_db)):
    return career_service.list_content_ideas(db, category)


# --- Interview prep ---

@interview_router.get("/questions", response_model=List[schemas.InterviewQuestionOut])
def list_questions(category: Optional[str] = None, db: Session = Depends(get_db)):
    return career_service.list_interview_questions(db, category)


@interview_router.get("/mock", response_model=List[schemas.MockInterviewOut])
def list_mock_interviews(category: Optional[str] = None, db: Session = Depends(get_db)):
    return career_service.list_mock_interviews(db, category)


@interview_router.get("/mock/{interview_id}", response_model=schemas.MockInterviewOut)
def get_mock_interview(interview_id: str, db: Session = Depends(get_db)):
    return career_service.get_mock_interview_or_404(db, interview_id)


@interview_router.get("/sessions", response_model=List[schemas.InterviewSessionOut])
def list_sessions(user_id: str, db: Session = Depends(get_db)):
    return career_service.list_interview_sessions(db, user_id)


@interview_router.post("/sessions", response_model=schemas.InterviewSessionOut, status_code=201)
def start_session(payload: schemas.InterviewSessionStart, db: Session = Depends(get_db)):
    return career_service.start_interview_session(db, payload.user_id, payload.mock_interview_id)


@interview_router.post("/sessions/{session_id}/complete", response_model=schemas.InterviewSessionOut)
def complete_session(session_id: str, payload: schemas.InterviewSessionComplete, db: Session = Depends(get_db)):
    return career_service.complete_interview_session(db, session_id, payload)


@interview_router.post("/sessions/{session_id}/recording", response_model=schemas.InterviewSessionOut)
async def upload_recording(session_id: str, file: UploadFile = File(...), db: Session = Depends(get_db)):
    content = await file.read()
    return await career_service.upload_interview_recording(db, session_id, file.filename, content)
