from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..exceptions import ZoomApiError, ZoomError
from ..services import training_service, zoom_service

router = APIRouter(
    prefix="/sessions/{session_id}/meetings",
    tags=["meetings"],
)


@router.get("/")
async def get_meeting(
    session_id: str,
    db: Session = Depends(get_db),
):
    """
    Zoom details for the session's meeting.
    """
    sess = training_service.get_session_or_404(db, session_id)
    if not sess.zoom_meeting_id:
        raise HTTPException(status_code=404, detail="Session has no Zoom meeting")
    meeting = await zoom_service.get_meeting(sess.zoom_meeting_id)
    if meeting is None:
        raise HTTPException(status_code=404, detail="Zoom meeting not found")
    return meeting


@router.post("/", response_model=schemas.SessionOut, status_code=201)
async def schedule_meeting(
    session_id: str,
    payload: schemas.MeetingCreate,
    db: Session = Depends(get_db),
):
    """
    Schedule a Zoom meeting for the session and store its join details.
    """
    try:
        return await training_service.schedule_meeting(db, session_id, payload)
    except ZoomApiError as e:
        raise HTTPException(status_code=400 if e.is_client_error else 502, detail=str(e))
    except ZoomError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/end")
async def end_meeting(
    session_id: str,
    db: Session = Depends(get_db),
):
    sess = training_service.get_session_or_404(db, session_id)
    if not sess.zoom_meeting_id:
        raise HTTPException(status_code=404, detail="Session has no Zoom meeting")
    ended = await zoom_service.end_meeting(sess.zoom_meeting_id)
    if ended and sess.status == "in-progress":
        training_service.set_session_status(db, sess, "completed")
    return {"ended": ended}
