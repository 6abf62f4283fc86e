from unittest.mock import AsyncMock, patch

import pytest

from cvup.models import SessionParticipant, SessionRecording, UserExtension
from cvup.services import zoom_service
from cvup.utils.meeting_urls import extract_meeting_id


@pytest.mark.parametrize("url, expected", [
    ("https://us02web.zoom.us/j/85746065432?pwd=abc", ("85746065432", "zoom")),
    ("https://zoom.us/wc/85746065432/join", ("85746065432", "zoom")),
    ("https://meet.google.com/abc-defg-hij?authuser=0", ("abc-defg-hij", "google")),
    ("https://meet.google.com/landing", (None, "google")),
    ("https://example.com/j/123", (None, None)),
    (None, (None, None)),
])
def test_extract_meeting_id(url, expected):
    assert extract_meeting_id(url) == expected


def send(client, **message):
    return client.post("/extension/messages", json=message)


def test_check_for_meeting(client):
    res = send(client, action="checkForMeeting", url="https://zoom.us/j/85746065432")
    assert res.json() == {"inMeeting": True, "meetingId": "85746065432", "platform": "zoom"}

    res = send(client, action="checkForMeeting", url="https://news.example.com")
    assert res.json()["inMeeting"] is False


def test_meeting_detected_starts_session(client, db, make_session):
    sess = make_session(zoom_meeting_id="85746065432")
    res = send(client, action="meetingDetected", meetingId="85746065432", platform="zoom")
    assert res.json() == {"received": True, "sessionId": sess.id, "startRecording": True}
    db.refresh(sess)
    assert sess.status == "in-progress"


def test_meeting_detected_for_unknown_meeting(client):
    res = send(client, action="meetingDetected", meetingId="999", platform="zoom")
    assert res.json() == {"received": True, "sessionId": None, "startRecording": False}


def test_google_meet_session_matched_by_link(client, make_session):
    sess = make_session(meet_link="https://meet.google.com/abc-defg-hij")
    res = send(client, action="meetingDetected", meetingId="abc-defg-hij", platform="google")
    assert res.json()["sessionId"] == sess.id


def test_start_and_stop_recording(client, db, make_session):
    sess = make_session(zoom_meeting_id="123", status="in-progress")
    assert send(client, action="startRecording", meetingId="123").json() == {"started": True}

    res = send(client, action="stopRecording", meetingId="123")
    assert res.json() == {"stopped": True, "sessionId": sess.id}
    db.refresh(sess)
    assert sess.status == "completed"


def test_stop_recording_walks_scheduled_session_through_in_progress(client, db, make_session):
    sess = make_session(zoom_meeting_id="123")
    send(client, action="stopRecording", meetingId="123")
    db.refresh(sess)
    assert sess.status == "completed"


def test_stop_recording_leaves_cancelled_session(client, db, make_session):
    sess = make_session(zoom_meeting_id="123", status="cancelled")
    assert send(client, action="stopRecording", meetingId="123").json()["sessionId"] == sess.id
    db.refresh(sess)
    assert sess.status == "cancelled"


def test_recording_complete_unknown_meeting(client):
    res = send(client, action="recordingComplete", recordingData={"meetingId": "404"})
    assert res.status_code == 404


def test_recording_complete_stores_recording_and_participants(client, db, make_session):
    sess = make_session(zoom_meeting_id="123")
    data = {
        "meetingId": "123",
        "platform": "zoom",
        "start_time": "2030-05-01T10:00:00Z",
        "end_time": "2030-05-01T10:45:00Z",
        "participants": ["Ana", {"name": "Bo", "email": "bo@example.com"}],
    }
    with patch.object(zoom_service, "get_participants", AsyncMock(return_value=[])):
        res = send(client, action="recordingComplete", recordingData=data)

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["participantsProcessed"] == 2
    assert db.query(SessionRecording).filter(SessionRecording.session_id == sess.id).count() == 1
    assert db.query(SessionParticipant).count() == 2


def test_unknown_action(client):
    res = send(client, action="selfDestruct")
    assert res.status_code == 400
    assert res.json() == {"received": False, "message": "Unknown action"}


def test_register_extension(client, db, make_profile):
    user = make_profile()
    payload = {"userId": user.id, "extensionId": "ext-1", "version": "1.0.0", "settings": {"autoRecord": True}}
    assert client.post("/extension/register", json=payload).json() == {"success": True}
    payload["version"] = "1.0.1"
    client.post("/extension/register", json=payload)

    [ext] = db.query(UserExtension).all()
    assert ext.version == "1.0.1"
    assert ext.settings == {"autoRecord": True}
