import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import schemas
from ..models import SessionParticipant, TrainingSession
from ..utils.time_utils import to_zoom_time
from . import email_service, zoom_service

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "scheduled": {"in-progress", "cancelled"},
    "in-progress": {"completed", "cancelled"},
}
CLOSED_STATUSES = ("cancelled", "completed")


def get_session_or_404(db: Session, session_id: str) -> TrainingSession:
    sess = db.get(TrainingSession, session_id)
    if not sess:
        raise HTTPException(status_code=404, detail="Session not found")
    return sess


def find_session_by_meeting(db: Session, meeting_id: Optional[str]) -> Optional[TrainingSession]:
    if not meeting_id:
        return None
    meeting_id = str(meeting_id)
    return (
        db.query(TrainingSession)
        .filter(
            (TrainingSession.zoom_meeting_id == meeting_id)
            | (TrainingSession.zoom_meeting_uuid == meeting_id)
            | (TrainingSession.meet_link.contains(meeting_id))
        )
        .first()
    )


def list_sessions(db: Session, status: Optional[str] = None) -> List[TrainingSession]:
    query = db.query(TrainingSession)
    if status:
        query = query.filter(TrainingSession.status == status)
    return query.order_by(TrainingSession.date, TrainingSession.start_time).all()


def create_session(db: Session, payload: schemas.SessionCreate) -> TrainingSession:
    if payload.end_time <= payload.start_time:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    data = payload.model_dump()
    data["date"] = data["date"] or payload.start_time.date()
    sess = TrainingSession(**data, status="scheduled", enrolled=0)
    db.add(sess)
    db.commit()
    db.refresh(sess)
    logger.info("Created training session %s (%s)", sess.id, sess.title)
    return sess


def check_transition(current: str, new: str) -> None:
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise HTTPException(status_code=409, detail=f"Cannot change session status from {current} to {new}")


def set_session_status(db: Session, sess: TrainingSession, status: str) -> TrainingSession:
    check_transition(sess.status, status)
    sess.status = status
    db.commit()
    db.refresh(sess)
    logger.info("Session %s is now %s", sess.id, status)
    return sess


def update_session(db: Session, session_id: str, payload: schemas.SessionUpdate) -> TrainingSession:
    sess = get_session_or_404(db, session_id)
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    if "status" in updates:
        check_transition(sess.status, updates["status"])
    start = updates.get("start_time", sess.start_time)
    end = updates.get("end_time", sess.end_time)
    if end <= start:
        raise HTTPException(status_code=400, detail="end_time must be after start_time")
    if "capacity" in updates and updates["capacity"] < sess.enrolled:
        raise HTTPException(status_code=409, detail="Capacity cannot be lower than the number enrolled")

    for key, value in updates.items():
        setattr(sess, key, value)
    db.commit()
    db.refresh(sess)
    return sess


def delete_session(db: Session, session_id: str) -> None:
    sess = get_session_or_404(db, session_id)
    db.delete(sess)
    db.commit()
    logger.info("Deleted training session %s", session_id)


# --- Registration ------------------------------------------------------------

def _get_registration(db: Session, session_id: str, user_id: str) -> Optional[SessionParticipant]:
    return (
        db.query(SessionParticipant)
        .filter(SessionParticipant.session_id == session_id, SessionParticipant.user_id == user_id)
        .first()
    )


def register_for_session(db: Session, session_id: str, user_id: str) -> SessionParticipant:
    """
    Register a user for a session. The participant row and the enrolled
    counter are written in the same commit.
    """
    sess = get_session_or_404(db, session_id)
    if sess.status in CLOSED_STATUSES:
        raise HTTPException(status_code=409, detail=f"Session is {sess.status}.")
    if _get_registration(db, session_id, user_id):
        raise HTTPException(status_code=409, detail="Already registered for this session.")
    if (sess.enrolled or 0) >= sess.capacity:
        raise HTTPException(status_code=409, detail="Session is full.")

    participant = SessionParticipant(session_id=session_id, user_id=user_id, status="registered")
    db.add(participant)
    sess.enrolled = (sess.enrolled or 0) + 1
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent registration for the same user
        db.rollback()
        raise HTTPException(status_code=409, detail="Already registered for this session.")
    db.refresh(participant)
    logger.info("User %s registered for session %s", user_id, session_id)
    return participant


def cancel_registration(db: Session, session_id: str, user_id: str) -> None:
    sess = get_session_or_404(db, session_id)
    participant = _get_registration(db, session_id, user_id)
    if not participant:
        raise HTTPException(status_code=404, detail="Registration not found")
    db.delete(participant)
    sess.enrolled = max(0, (sess.enrolled or 0) - 1)
    db.commit()
    logger.info("User %s cancelled registration for session %s", user_id, session_id)


async def notify_participant(db: Session, participant: SessionParticipant) -> bool:
    sess = participant.session
    email = participant.email or (participant.user.email if participant.user else None)
    if not email:
        return False
    sent = await email_service.send_session_invite(sess, email)
    if sent:
        participant.notified = True
        db.commit()
    return sent


def list_participants(db: Session, session_id: str) -> List[SessionParticipant]:
    get_session_or_404(db, session_id)
    return (
        db.query(SessionParticipant)
        .filter(SessionParticipant.session_id == session_id)
        .order_by(SessionParticipant.created_at)
        .all()
    )


def update_participant(db: Session, session_id: str, participant_id: str,
                       payload: schemas.ParticipantUpdate) -> SessionParticipant:
    participant = db.get(SessionParticipant, participant_id)
    if not participant or participant.session_id != session_id:
        raise HTTPException(status_code=404, detail="Participant not found")
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    for key, value in updates.items():
        setattr(participant, key, value)
    db.commit()
    db.refresh(participant)
    return participant


# --- Zoom meeting ------------------------------------------------------------

async def schedule_meeting(db: Session, session_id: str, payload: schemas.MeetingCreate) -> TrainingSession:
    sess = get_session_or_404(db, session_id)
    if sess.zoom_meeting_id:
        raise HTTPException(status_code=409, detail="Session already has a Zoom meeting")

    duration = payload.duration or max(1, (sess.duration_seconds or 3600) // 60)
    meeting = await zoom_service.create_meeting(
        topic=sess.title,
        start_time=to_zoom_time(sess.start_time),
        duration=duration,
        timezone=payload.timezone,
        agenda=payload.agenda or sess.description,
        settings=payload.settings,
    )

    sess.zoom_meeting_id = str(meeting["id"])
    sess.zoom_meeting_uuid = meeting.get("uuid")
    sess.zoom_join_url = meeting.get("join_url")
    sess.zoom_password = meeting.get("password")
    if payload.duration:
        sess.end_time = sess.start_time + timedelta(minutes=payload.duration)
    db.commit()
    db.refresh(sess)
    logger.info("Scheduled Zoom meeting %s for session %s", sess.zoom_meeting_id, sess.id)
    return sess
