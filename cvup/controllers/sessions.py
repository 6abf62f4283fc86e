from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import attendance_service, training_service

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/", response_model=schemas.SessionOut, status_code=201)
def create_session(payload: schemas.SessionCreate, db: Session = Depends(get_db)):
    return training_service.create_session(db, payload)


@router.get("/", response_model=List[schemas.SessionOut])
def list_sessions(status: Optional[schemas.SessionStatus] = None, db: Session = Depends(get_db)):
    return training_service.list_sessions(db, status)


@router.get("/{session_id}", response_model=schemas.SessionOut)
def get_session(session_id: str, db: Session = Depends(get_db)):
    return training_service.get_session_or_404(db, session_id)


@router.patch("/{session_id}", response_model=schemas.SessionOut)
def update_session(session_id: str, payload: schemas.SessionUpdate, db: Session = Depends(get_db)):
    return training_service.update_session(db, session_id, payload)


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, db: Session = Depends(get_db)):
    training_service.delete_session(db, session_id)


@router.get("/{session_id}/attendance", response_model=schemas.AttendanceReport)
def get_attendance_report(session_id: str, db: Session = Depends(get_db)):
    """
    Present/partial/absent counts for the session, participants sorted by attendance.
    """
    return attendance_service.attendance_report(db, session_id)
