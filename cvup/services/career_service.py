import logging
import os
from datetime import timedelta
from typing import List, Optional
from uuid import uuid4

from azure.core.exceptions import AzureError
from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..models import (
    CVTemplate, InterviewQuestion, LinkedInContentIdea, LinkedInOptimization, LinkedInProfile, MockInterview,
    Profile, Role, TrainingSession, UserCV, UserInterviewSession, now,
)
from .recording_service import store_file

logger = logging.getLogger(__name__)

GROWTH_WINDOW = timedelta(days=30)


# --- Profiles ----------------------------------------------------------------

def get_profile_or_404(db: Session, user_id: str) -> Profile:
    profile = db.get(Profile, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


def create_profile(db: Session, payload: schemas.ProfileCreate) -> Profile:
    data = payload.model_dump(exclude_none=True)
    if data.get("id") and db.get(Profile, data["id"]):
        raise HTTPException(status_code=409, detail="Profile already exists")
    profile = Profile(**data)
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def update_profile(db: Session, user_id: str, payload: schemas.ProfileUpdate) -> Profile:
    profile = get_profile_or_404(db, user_id)
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    for key, value in updates.items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return profile


async def _store_user_file(folder: str, user_id: str, filename: str, content: bytes) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    storage_path = f"{folder}/{user_id}/{uuid4()}{ext}"
    try:
        return await store_file(storage_path, content)
    except (AzureError, OSError) as e:
        logger.error("Failed to store %s file for user %s: %s", folder, user_id, e)
        raise HTTPException(status_code=500, detail="Failed to store file")


async def upload_avatar(db: Session, user_id: str, filename: str, content: bytes) -> Profile:
    profile = get_profile_or_404(db, user_id)
    profile.avatar_url = await _store_user_file("avatars", user_id, filename, content)
    db.commit()
    db.refresh(profile)
    return profile


# --- Admin -------------------------------------------------------------------

def admin_stats(db: Session) -> dict:
    """
    Platform counts plus month-over-month growth: the percentage change in
    new profiles over the last 30 days against the 30 days before that.
    """
    current = now()
    recent = db.query(Profile).filter(Profile.created_at >= current - GROWTH_WINDOW).count()
    previous = (
        db.query(Profile)
        .filter(Profile.created_at >= current - 2 * GROWTH_WINDOW, Profile.created_at < current - GROWTH_WINDOW)
        .count()
    )
    if previous:
        growth = round((recent - previous) / previous * 100, 1)
    else:
        growth = 100.0 if recent else 0.0

    return {
        "total_users": db.query(Profile).count(),
        "total_cvs": db.query(UserCV).count(),
        "total_training_sessions": db.query(TrainingSession).count(),
        "monthly_growth": growth,
    }


def list_users(db: Session, status: Optional[str] = None) -> List[Profile]:
    query = db.query(Profile)
    if status:
        query = query.filter(Profile.status == status)
    return query.order_by(Profile.created_at.desc()).all()


def update_user_status(db: Session, user_id: str, status: str) -> Profile:
    profile = get_profile_or_404(db, user_id)
    profile.status = status
    db.commit()
    db.refresh(profile)
    logger.info("User %s status set to %s", user_id, status)
    return profile


def update_user_role(db: Session, user_id: str, role_name: str) -> Profile:
    profile = get_profile_or_404(db, user_id)
    role = db.query(Role).filter(Role.name == role_name).first()
    if not role:
        raise HTTPException(status_code=404, detail=f"Role not found: {role_name}")
    profile.role = role.name
    profile.role_id = role.id
    db.commit()
    db.refresh(profile)
    logger.info("User %s role set to %s", user_id, role_name)
    return profile


# --- CVs ---------------------------------------------------------------------

def list_cv_templates(db: Session, category: Optional[str] = None) -> List[CVTemplate]:
    query = db.query(CVTemplate)
    if category:
        query = query.filter(CVTemplate.category == category)
    return query.order_by(CVTemplate.is_popular.desc(), CVTemplate.name).all()


def get_cv_template_or_404(db: Session, template_id: str) -> CVTemplate:
    template = db.get(CVTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


def list_user_cvs(db: Session, user_id: str) -> List[UserCV]:
    return db.query(UserCV).filter(UserCV.user_id == user_id).order_by(UserCV.last_updated.desc()).all()


def get_cv_or_404(db: Session, cv_id: str) -> UserCV:
    cv = db.get(UserCV, cv_id)
    if not cv:
        raise HTTPException(status_code=404, detail="CV not found")
    return cv


def create_cv(db: Session, payload: schemas.CVCreate) -> UserCV:
    if payload.template_id:
        get_cv_template_or_404(db, payload.template_id)
    cv = UserCV(**payload.model_dump())
    db.add(cv)
    db.commit()
    db.refresh(cv)
    return cv


def update_cv(db: Session, cv_id: str, payload: schemas.CVUpdate) -> UserCV:
    cv = get_cv_or_404(db, cv_id)
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    for key, value in updates.items():
        setattr(cv, key, value)
    db.commit()
    db.refresh(cv)
    return cv


def delete_cv(db: Session, cv_id: str) -> None:
    cv = get_cv_or_404(db, cv_id)
    db.delete(cv)
    db.commit()


# --- LinkedIn ----------------------------------------------------------------

def get_linkedin_profile_or_404(db: Session, user_id: str) -> LinkedInProfile:
    profile = db.query(LinkedInProfile).filter(LinkedInProfile.user_id == user_id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="LinkedIn profile not found")
    return profile


def upsert_linkedin_profile(db: Session, user_id: str, payload: schemas.LinkedInProfileIn) -> LinkedInProfile:
    profile = db.query(LinkedInProfile).filter(LinkedInProfile.user_id == user_id).first()
    if profile is None:
        profile = LinkedInProfile(user_id=user_id, skills=[], experience=[], education=[], profile_score=0)
        db.add(profile)
    # fields left out of the request keep their stored values
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(profile, key, value)
    profile.last_updated = now()
    db.commit()
    db.refresh(profile)
    return profile


def list_linkedin_optimizations(db: Session, category: Optional[str] = None) -> List[LinkedInOptimization]:
    query = db.query(LinkedInOptimization)
    if category:
        query = query.filter(LinkedInOptimization.category == category)
    return query.all()


def list_content_ideas(db: Session, category: Optional[str] = None) -> List[LinkedInContentIdea]:
    query = db.query(LinkedInContentIdea)
    if category:
        query = query.filter(LinkedInContentIdea.category == category)
    return query.all()


# --- Interviews --------------------------------------------------------------

def list_interview_questions(db: Session, category: Optional[str] = None) -> List[InterviewQuestion]:
    query = db.query(InterviewQuestion)
    if category:
        query = query.filter(InterviewQuestion.category == category)
    return query.order_by(InterviewQuestion.created_at).all()


def list_mock_interviews(db: Session, category: Optional[str] = None) -> List[MockInterview]:
    query = db.query(MockInterview)
    if category:
        query = query.filter(MockInterview.category == category)
    return query.all()


def get_mock_interview_or_404(db: Session, interview_id: str) -> MockInterview:
    interview = db.get(MockInterview, interview_id)
    if not interview:
        raise HTTPException(status_code=404, detail="Mock interview not found")
    return interview


def start_interview_session(db: Session, user_id: str, mock_interview_id: str) -> UserInterviewSession:
    get_mock_interview_or_404(db, mock_interview_id)
    session = UserInterviewSession(user_id=user_id, mock_interview_id=mock_interview_id, started_at=now())
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def get_interview_session_or_404(db: Session, session_id: str) -> UserInterviewSession:
    session = db.get(UserInterviewSession, session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Interview session not found")
    return session


def complete_interview_session(db: Session, session_id: str,
                               payload: schemas.InterviewSessionComplete) -> UserInterviewSession:
    session = get_interview_session_or_404(db, session_id)
    if session.completed_at:
        raise HTTPException(status_code=409, detail="Interview session already completed")
    session.score = payload.score
    session.feedback = payload.feedback
    if payload.recording_url:
        session.recording_url = payload.recording_url
    session.completed_at = now()
    db.commit()
    db.refresh(session)
    return session


def list_interview_sessions(db: Session, user_id: str) -> List[UserInterviewSession]:
    return (
        db.query(UserInterviewSession)
        .filter(UserInterviewSession.user_id == user_id)
        .order_by(UserInterviewSession.started_at.desc())
        .all()
    )


async def upload_interview_recording(db: Session, session_id: str, filename: str,
                                     content: bytes) -> UserInterviewSession:
    session = get_interview_session_or_404(db, session_id)
    session.recording_url = await _store_user_file("interviews", session.user_id, filename, content)
    db.commit()
    db.refresh(session)
    return session
