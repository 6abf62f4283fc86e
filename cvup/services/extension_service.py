import logging
from typing import Any, Dict

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..utils.meeting_urls import extract_meeting_id
from . import attendance_service
from .training_service import find_session_by_meeting, set_session_status

logger = logging.getLogger(__name__)


async def check_for_meeting(db: Session, message: schemas.ExtensionMessage) -> Dict[str, Any]:
    meeting_id, platform = extract_meeting_id(message.url)
    return {"inMeeting": meeting_id is not None, "meetingId": meeting_id, "platform": platform}


async def meeting_detected(db: Session, message: schemas.ExtensionMessage) -> Dict[str, Any]:
    sess = find_session_by_meeting(db, message.meeting_id)
    if sess and sess.status == "scheduled":
        set_session_status(db, sess, "in-progress")
        logger.info("Session %s started (meeting %s detected on %s)", sess.id, message.meeting_id, message.platform)
    return {"received": True, "sessionId": sess.id if sess else None, "startRecording": sess is not None}


async def start_recording(db: Session, message: schemas.ExtensionMessage) -> Dict[str, Any]:
    logger.info("Extension started recording meeting %s", message.meeting_id)
    return {"started": True}


async def stop_recording(db: Session, message: schemas.ExtensionMessage) -> Dict[str, Any]:
    sess = find_session_by_meeting(db, message.meeting_id)
    if sess and sess.status == "scheduled":
        # the start was never reported
        set_session_status(db, sess, "in-progress")
    if sess and sess.status == "in-progress":
        set_session_status(db, sess, "completed")
        logger.info("Session %s completed (recording stopped)", sess.id)
    return {"stopped": True, "sessionId": sess.id if sess else None}


async def recording_complete(db: Session, message: schemas.ExtensionMessage) -> Dict[str, Any]:
    data = message.recording_data
    if data is None:
        raise HTTPException(status_code=400, detail="recordingData is required")
    meeting_id = data.meeting_id or message.meeting_id
    sess = find_session_by_meeting(db, meeting_id)
    if not sess:
        raise HTTPException(status_code=404, detail="No session found for this meeting")

    payload = data.model_dump(exclude={"meeting_id", "platform"})
    # only Zoom meetings have a participant report to reconcile against
    zoom_meeting_id = meeting_id if (data.platform or message.platform) != "google" else None
    result = await attendance_service.process_extension_recording(db, sess.id, zoom_meeting_id, payload)
    return {"success": result["recordingId"] is not None, "sessionId": sess.id, **result}


HANDLERS = {
    "checkForMeeting": check_for_meeting,
    "meetingDetected": meeting_detected,
    "startRecording": start_recording,
    "stopRecording": stop_recording,
    "recordingComplete": recording_complete,
}
