# cvup/services/zoom_service.py

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
from yarl import URL

from ..config import get_settings
from ..exceptions import ZoomApiError, ZoomError, ZoomRateLimitError
from ..oauth_token import get_zoom_oauth_token

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 300

MEETING_DEFAULT_SETTINGS = {
    "host_video": False,
    "participant_video": False,
    "join_before_host": False,
    "mute_upon_entry": True,
    "waiting_room": True,
    "audio": "both",
    "auto_recording": "none",
    "approval_type": 2,  # no registration required
}

PARTICIPANT_FIELDS = (
    "id", "user_id", "name", "user_email", "join_time", "leave_time",
    "duration", "attentiveness_score", "failover", "customer_key", "status",
)

REGISTRANT_FIELDS = (
    "id", "email", "first_name", "last_name", "status", "create_time", "join_url",
    "address", "city", "country", "zip", "state", "phone", "industry", "org",
    "job_title", "purchasing_time_frame", "role_in_purchase_process",
    "no_of_employees", "comments", "custom_questions",
)

ALREADY_ENDED_MARKERS = ("already ended", "not started", "not currently in progress")


def encode_meeting_id(meeting_id: Any) -> str:
    """
    URL-encode a meeting id for use in a path. Zoom requires UUIDs that
    start with '/' or contain '//' to be encoded twice.
    """
    value = str(meeting_id)
    encoded = quote(value, safe="")
    if value.startswith("/") or "//" in value:
        encoded = quote(encoded, safe="")
    return encoded


def parse_zoom_response(status: int, content_type: str, text: str,
                        retry_after: Optional[str] = None) -> Any:
    """Turn a raw Zoom response into a result, or raise the matching ZoomApiError."""
    is_json = "application/json" in (content_type or "")

    if status == 429:
        logger.warning("Zoom API rate limit hit. Retry after: %s seconds.", retry_after or "N/A")
        raise ZoomRateLimitError(retry_after)

    if status >= 400:
        detail: Any = text
        code = None
        if is_json and text:
            try:
                detail = json.loads(text)
            except ValueError:
                logger.error("Failed to parse Zoom error response body")
        if isinstance(detail, dict):
            code = detail.get("code")
        raise ZoomApiError(status, detail, code)

    if status == 204:
        return None
    if is_json:
        return json.loads(text) if text else None
    return text


async def zoom_api_request(method: str, endpoint: str, params: Optional[Dict[str, Any]] = None,
                           body: Optional[Dict[str, Any]] = None) -> Any:
    token = await get_zoom_oauth_token()
    settings = get_settings()
    url = URL(f"{settings.zoom_api_base_url}{endpoint}", encoded=True)
    if params:
        url = url.update_query({k: str(v) for k, v in params.items() if v is not None})

    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    try:
        async with aiohttp.ClientSession() as session:
            async with session.request(method, url, json=body, headers=headers) as resp:
                text = await resp.text()
                return parse_zoom_response(
                    resp.status,
                    resp.headers.get("Content-Type", ""),
                    text,
                    resp.headers.get("Retry-After"),
                )
    except ZoomApiError as e:
        logger.error("Zoom API error on %s %s: %s", method, endpoint, e)
        raise
    except aiohttp.ClientError as e:
        logger.error("Error during Zoom API request %s %s: %s", method, endpoint, e)
        raise


async def fetch_all_pages(endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
    """
    Walk a Zoom list endpoint via next_page_token, collecting the first list
    found in each page ('participants', 'meetings', 'registrants', ...).
    """
    query = dict(params or {})
    query["page_size"] = MAX_PAGE_SIZE
    results: List[Any] = []

    while True:
        response = await zoom_api_request("GET", endpoint, query)
        if isinstance(response, list):
            results.extend(response)
            break
        if not isinstance(response, dict):
            break

        data_key = next((k for k, v in response.items() if isinstance(v, list)), None)
        if data_key:
            results.extend(response[data_key])

        next_token = response.get("next_page_token")
        if not next_token:
            break
        query["next_page_token"] = next_token

    return results


def _error_mentions(error: ZoomApiError, *markers: str) -> bool:
    message = str(error)
    return any(marker in message for marker in markers)


# --- Meetings ----------------------------------------------------------------

async def create_meeting(topic: str, start_time: str, duration: int, user_id: str = "me",
                         timezone: Optional[str] = None, agenda: Optional[str] = None,
                         settings: Optional[Dict[str, Any]] = None) -> dict:
    payload = {
        "topic": topic,
        "type": 2,  # scheduled meeting
        "start_time": start_time,
        "duration": duration,
        "timezone": timezone or "UTC",
        "agenda": agenda or "",
        "settings": {**MEETING_DEFAULT_SETTINGS, **(settings or {})},
    }
    return await zoom_api_request("POST", f"/users/{user_id}/meetings", body=payload)


async def get_meeting(meeting_id: str) -> Optional[dict]:
    try:
        return await zoom_api_request("GET", f"/meetings/{encode_meeting_id(meeting_id)}")
    except ZoomApiError as e:
        if e.status == 404 or _error_mentions(e, "Meeting does not exist"):
            logger.info("Meeting %s not found.", meeting_id)
            return None
        raise


async def delete_meeting(meeting_id: str, occurrence_id: Optional[str] = None) -> bool:
    try:
        await zoom_api_request("DELETE", f"/meetings/{encode_meeting_id(meeting_id)}",
                               {"occurrence_id": occurrence_id})
        return True
    except (ZoomError, aiohttp.ClientError) as e:
        logger.error("Error deleting Zoom meeting %s: %s", meeting_id, e)
        return False


async def update_meeting(meeting_id: str, update_data: Dict[str, Any],
                         occurrence_id: Optional[str] = None) -> bool:
    try:
        await zoom_api_request("PATCH", f"/meetings/{encode_meeting_id(meeting_id)}",
                               {"occurrence_id": occurrence_id}, update_data)
        return True
    except (ZoomError, aiohttp.ClientError) as e:
        logger.error("Error updating Zoom meeting %s: %s", meeting_id, e)
        return False


async def end_meeting(meeting_id: str) -> bool:
    try:
        await zoom_api_request("PUT", f"/meetings/{encode_meeting_id(meeting_id)}/status",
                               body={"action": "end"})
        logger.info("Ended meeting %s", meeting_id)
        return True
    except ZoomApiError as e:
        if _error_mentions(e, *ALREADY_ENDED_MARKERS):
            logger.info("Meeting %s was not running or already ended.", meeting_id)
            return True
        logger.error("Error ending meeting %s: %s", meeting_id, e)
        return False


async def update_meeting_status(meeting_id: str, status: str) -> bool:
    if status == "finished":
        await zoom_api_request("PUT", f"/meetings/{encode_meeting_id(meeting_id)}/status",
                               body={"action": "end"})
        logger.info("Ended meeting %s", meeting_id)
        return True
    if status == "cancelled":
        ok = await delete_meeting(meeting_id)
        if not ok:
            logger.warning("Failed to cancel (delete) meeting %s", meeting_id)
        return ok
    logger.warning("Unsupported status update: %s. Only 'finished' or 'cancelled' supported.", status)
    return False


async def list_meetings(user_id: str = "me", type: str = "upcoming", page_size: Optional[int] = None,
                        next_page_token: Optional[str] = None, from_date: Optional[str] = None,
                        to_date: Optional[str] = None) -> dict:
    params: Dict[str, Any] = {
        "type": type,
        "page_size": min(page_size or 30, MAX_PAGE_SIZE),
        "next_page_token": next_page_token,
    }
    if type in ("past", "pastOne"):
        params["from"] = from_date
        params["to"] = to_date
    response = await zoom_api_request("GET", f"/users/{user_id}/meetings", params)
    return response or {"meetings": []}


async def _all_meetings(user_id: str, type: str, from_date=None, to_date=None) -> List[dict]:
    meetings: List[dict] = []
    token = None
    while True:
        page = await list_meetings(user_id, type, MAX_PAGE_SIZE, token, from_date, to_date)
        meetings.extend(page.get("meetings") or [])
        token = page.get("next_page_token")
        if not token:
            return meetings


async def get_upcoming_meetings(user_id: str = "me") -> List[dict]:
    return await _all_meetings(user_id, "upcoming")


async def get_past_meetings(user_id: str = "me", from_date: Optional[str] = None,
                            to_date: Optional[str] = None) -> List[dict]:
    return await _all_meetings(user_id, "past", from_date, to_date)


# --- Participants, registrants, recordings -----------------------------------

async def get_participants(meeting_id: str) -> List[dict]:
    """
    Participant report for a finished meeting. Reports only exist once the
    meeting has ended, so a missing report gives an empty list.
    """
    try:
        records = await fetch_all_pages(f"/report/meetings/{encode_meeting_id(meeting_id)}/participants")
    except ZoomApiError as e:
        if e.status in (400, 404) or _error_mentions(e, "No report"):
            logger.info("Participant report for meeting %s not available yet.", meeting_id)
            return []
        raise
    return [{field: p.get(field) for field in PARTICIPANT_FIELDS} for p in records]


async def get_recordings(meeting_id: str) -> Optional[dict]:
    try:
        return await zoom_api_request("GET", f"/meetings/{encode_meeting_id(meeting_id)}/recordings")
    except ZoomApiError as e:
        if e.status == 404 or _error_mentions(e, "No recording"):
            logger.info("Recordings for meeting %s not found.", meeting_id)
            return None
        raise


async def get_registrants(meeting_id: str, status: Optional[str] = None) -> List[dict]:
    try:
        records = await fetch_all_pages(f"/meetings/{encode_meeting_id(meeting_id)}/registrants",
                                        {"status": status or "approved"})
    except ZoomApiError as e:
        # code 300: registration is not enabled for this meeting
        if e.status == 404 or e.code == 300:
            logger.info("Registrants for meeting %s not found or registration not enabled.", meeting_id)
            return []
        raise
    return [{field: r.get(field) for field in REGISTRANT_FIELDS} for r in records]


async def add_registrant(meeting_id: str, registrant_data: Dict[str, Any]) -> dict:
    return await zoom_api_request("POST", f"/meetings/{encode_meeting_id(meeting_id)}/registrants",
                                  body=registrant_data)


async def generate_meeting_report(meeting_id: str) -> dict:
    meeting = await get_meeting(meeting_id)
    participants = await get_participants(meeting_id)
    recordings = await get_recordings(meeting_id)

    durations = [p.get("duration") or 0 for p in participants]
    average = round(sum(durations) / len(durations)) if durations else 0
    return {
        "meeting_details": meeting,
        "participants": participants,
        "total_participants": len(participants),
        "average_duration": average,
        "recordings": (recordings or {}).get("recording_files") or [],
    }
