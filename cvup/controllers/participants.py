from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import attendance_service, training_service

router = APIRouter(prefix="/sessions/{session_id}/participants", tags=["participants"])


@router.get("/", response_model=List[schemas.ParticipantOut])
def list_participants(session_id: str, db: Session = Depends(get_db)):
    return training_service.list_participants(db, session_id)


@router.post("/", response_model=schemas.ParticipantOut, status_code=201)
async def register(
    session_id: str,
    payload: schemas.RegistrationCreate,
    db: Session = Depends(get_db)
):
    """
    Register a user for the session and mail them a calendar invite.
    """
    participant = training_service.register_for_session(db, session_id, payload.user_id)
    # the registration is already committed; a failed invite only leaves notified false
    await training_service.notify_participant(db, participant)
    return participant


@router.delete("/{user_id}", status_code=204)
def cancel_registration(session_id: str, user_id: str, db: Session = Depends(get_db)):
    training_service.cancel_registration(db, session_id, user_id)


@router.patch("/{participant_id}", response_model=schemas.ParticipantOut)
def update_participant(
    session_id: str,
    participant_id: str,
    payload: schemas.ParticipantUpdate,
    db: Session = Depends(get_db)
):
    return training_service.update_participant(db, session_id, participant_id, payload)


@router.post("/sync", response_model=schemas.SyncResult)
async def sync_participants(
    session_id: str,
    payload: schemas.SyncRequest,
    db: Session = Depends(get_db)
):
    """
    Pull the Zoom participant report into this session's attendance.
    """
    sess = training_service.get_session_or_404(db, session_id)
    meeting_id = payload.zoom_meeting_id or sess.zoom_meeting_id
    if not meeting_id:
        raise HTTPException(status_code=400, detail="Session has no Zoom meeting")
    return await attendance_service.sync_session_participants(db, session_id, meeting_id)
