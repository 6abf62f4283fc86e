import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import get_db
from ..exceptions import MissingParameterError, ZoomApiError
from ..services import attendance_service, recording_service, zoom_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["zoom-api"])

Handler = Callable[[Dict[str, Any], Session], Awaitable[Any]]


def _require(params: Dict[str, Any], *names: str) -> None:
    for name in names:
        if params.get(name) in (None, ""):
            raise MissingParameterError(name)


def _user(params: Dict[str, Any]) -> str:
    return params.get("userId") or get_settings().zoom_user_id


async def create_meeting(params, db):
    _require(params, "topic", "startTime", "duration")
    return await zoom_service.create_meeting(
        params["topic"], params["startTime"], params["duration"], _user(params),
        params.get("timezone"), params.get("agenda"), params.get("settings"),
    )


async def get_meeting(params, db):
    _require(params, "meetingId")
    return await zoom_service.get_meeting(params["meetingId"])


async def update_meeting(params, db):
    _require(params, "meetingId", "updateData")
    return await zoom_service.update_meeting(params["meetingId"], params["updateData"], params.get("occurrenceId"))


async def delete_meeting(params, db):
    _require(params, "meetingId")
    return await zoom_service.delete_meeting(params["meetingId"], params.get("occurrenceId"))


async def update_meeting_status(params, db):
    _require(params, "meetingId", "status")
    return await zoom_service.update_meeting_status(params["meetingId"], params["status"])


async def end_meeting(params, db):
    _require(params, "meetingId")
    return await zoom_service.end_meeting(params["meetingId"])


async def list_meetings(params, db):
    return await zoom_service.list_meetings(
        _user(params), params.get("type") or "upcoming", params.get("pageSize"),
        params.get("nextPageToken"), params.get("from"), params.get("to"),
    )


async def get_upcoming_meetings(params, db):
    return await zoom_service.get_upcoming_meetings(_user(params))


async def get_past_meetings(params, db):
    return await zoom_service.get_past_meetings(_user(params), params.get("from"), params.get("to"))


async def get_participants(params, db):
    _require(params, "meetingId")
    return await zoom_service.get_participants(params["meetingId"])


async def get_registrants(params, db):
    _require(params, "meetingId")
    return await zoom_service.get_registrants(params["meetingId"], params.get("status"))


async def add_registrant(params, db):
    _require(params, "meetingId", "registrantData")
    return await zoom_service.add_registrant(params["meetingId"], params["registrantData"])


async def get_recordings(params, db):
    _require(params, "meetingId")
    return await zoom_service.get_recordings(params["meetingId"])


async def generate_meeting_report(params, db):
    _require(params, "meetingId")
    return await zoom_service.generate_meeting_report(params["meetingId"])


async def track_attendance(params, db):
    _require(params, "sessionId", "participantData")
    return attendance_service.track_attendance(
        db, params.get("meetingId"), params["sessionId"], params["participantData"],
    )


async def sync_participants(params, db):
    _require(params, "sessionId", "zoomMeetingId")
    return await attendance_service.sync_session_participants(db, params["sessionId"], params["zoomMeetingId"])


async def process_extension_recording(params, db):
    _require(params, "sessionId", "recordingData")
    return await attendance_service.process_extension_recording(
        db, params["sessionId"], params.get("zoomMeetingId"), params["recordingData"],
    )


async def register_extension(params, db):
    _require(params, "userId", "extensionId", "version")
    return attendance_service.register_extension(
        db, params["userId"], params["extensionId"], params["version"], params.get("settings"),
    )


async def import_recordings(params, db):
    _require(params, "sessionId")
    recordings = await recording_service.import_cloud_recordings(
        db, params["sessionId"], params.get("zoomMeetingId"), bool(params.get("store")),
    )
    return [{"id": r.id, "zoom_recording_id": r.zoom_recording_id, "title": r.title,
             "storage_path": r.storage_path} for r in recordings]


ACTIONS: Dict[str, Handler] = {
    "createMeeting": create_meeting,
    "getMeeting": get_meeting,
    "updateMeeting": update_meeting,
    "deleteMeeting": delete_meeting,
    "updateMeetingStatus": update_meeting_status,
    "endMeeting": end_meeting,
    "listMeetings": list_meetings,
    "getUpcomingMeetings": get_upcoming_meetings,
    "getPastMeetings": get_past_meetings,
    "getParticipants": get_participants,
    "getRegistrants": get_registrants,
    "addRegistrant": add_registrant,
    "getRecordings": get_recordings,
    "generateMeetingReport": generate_meeting_report,
    "trackAttendance": track_attendance,
    "syncParticipants": sync_participants,
    "processExtensionRecording": process_extension_recording,
    "registerExtension": register_extension,
    "importRecordings": import_recordings,
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/zoom-api")
async def zoom_api(request: Request, db: Session = Depends(get_db)):
    """
    Action dispatcher: body is {"action": "...", "params": {...}}. Results are
    returned as-is; failures come back as {"error": "..."}.
    """
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Request body must be valid JSON")
    if not isinstance(body, dict):
        return _error(400, "Request body must be a JSON object")

    action = body.get("action")
    if not action or not isinstance(action, str):
        return _error(400, "Missing or invalid action")
    handler = ACTIONS.get(action)
    if handler is None:
        return _error(400, f"Invalid action: {action}")
    params = body.get("params") or {}
    if not isinstance(params, dict):
        return _error(400, "params must be a JSON object")

    logger.info("zoom-api action %s", action)
    try:
        result = await handler(params, db)
    except MissingParameterError as e:
        return _error(400, str(e))
    except ZoomApiError as e:
        # rate limiting is not a client error and lands on 500
        logger.error("zoom-api action %s failed: %s", action, e)
        return _error(400 if e.is_client_error else 500, str(e))
    except HTTPException as e:
        return _error(400 if e.status_code < 500 else 500, str(e.detail))
    except Exception as e:
        logger.exception("zoom-api action %s failed", action)
        return _error(500, str(e) or e.__class__.__name__)
    return JSONResponse(content=jsonable_encoder(result))
