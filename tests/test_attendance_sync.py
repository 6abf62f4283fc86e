from unittest.mock import AsyncMock, patch

import aiohttp
import pytest
from sqlalchemy.exc import SQLAlchemyError

from cvup.models import SessionParticipant, SessionRecording
from cvup.services import attendance_service


def report(*records):
    return AsyncMock(return_value=list(records))


def record(uuid, name="Ana", email="ana@example.com", join="2030-05-01T10:00:00Z",
           leave="2030-05-01T10:50:00Z", duration=3000, **extra):
    return {"id": uuid, "user_id": "16778240", "name": name, "user_email": email,
            "join_time": join, "leave_time": leave, "duration": duration, **extra}


def rows(db, session_id):
    return db.query(SessionParticipant).filter(SessionParticipant.session_id == session_id).all()


def test_derive_attendance_thresholds(make_session):
    sess = make_session()  # one hour
    assert attendance_service.derive_attendance(2700, sess) == (75.0, "present")
    assert attendance_service.derive_attendance(1800, sess) == (50.0, "partial")
    assert attendance_service.derive_attendance(0, sess) == (0.0, "absent")
    assert attendance_service.derive_attendance(7200, sess) == (100.0, "present")


@pytest.mark.asyncio
async def test_sync_creates_row_and_is_idempotent(db, make_session):
    sess = make_session()
    with patch.object(attendance_service.zoom_service, "get_participants", report(record("u1"))):
        first = await attendance_service.sync_session_participants(db, sess.id, "123")
        second = await attendance_service.sync_session_participants(db, sess.id, "123")

    assert first == {"synced": 1, "skipped": 0, "errors": 0}
    assert second == {"synced": 1, "skipped": 0, "errors": 0}
    [row] = rows(db, sess.id)
    assert row.zoom_participant_uuid == "u1"
    assert row.status == "present"
    assert row.attendance_percentage == pytest.approx(83.3)


@pytest.mark.asyncio
async def test_rejoin_records_merge_into_one_row(db, make_session):
    sess = make_session()
    records = [
        record("u1", join="2030-05-01T10:05:00Z", leave="2030-05-01T10:20:00Z", duration=900,
               attentiveness_score="40%"),
        record("u1", join="2030-05-01T10:30:00Z", leave="2030-05-01T10:45:00Z", duration=900,
               attentiveness_score="90%"),
    ]
    with patch.object(attendance_service.zoom_service, "get_participants", report(*records)):
        result = await attendance_service.sync_session_participants(db, sess.id, "123")

    assert result["synced"] == 1
    [row] = rows(db, sess.id)
    assert row.join_time.minute == 5
    assert row.leave_time.minute == 45
    assert row.duration_seconds == 1800
    assert row.attentiveness_score == 90.0
    assert row.status == "partial"


@pytest.mark.asyncio
async def test_records_without_uuid_are_skipped_and_bad_times_are_errors(db, make_session):
    sess = make_session()
    records = [record(None), record("u2", join="not a time"), record("u3", name="Bo", email="bo@example.com")]
    with patch.object(attendance_service.zoom_service, "get_participants", report(*records)):
        result = await attendance_service.sync_session_participants(db, sess.id, "123")

    assert result == {"synced": 1, "skipped": 1, "errors": 1}


@pytest.mark.asyncio
async def test_extension_row_is_adopted_by_report(db, make_session):
    sess = make_session()
    row_id = attendance_service.track_attendance(db, "123", sess.id, {
        "name": "Ana", "email": "ana@example.com",
        "join_time": "2030-05-01T10:00:00Z", "leave_time": "2030-05-01T10:30:00Z",
    })
    assert row_id is not None

    with patch.object(attendance_service.zoom_service, "get_participants", report(record("u1"))):
        await attendance_service.sync_session_participants(db, sess.id, "123")

    [row] = rows(db, sess.id)
    assert row.id == row_id
    assert row.zoom_participant_uuid == "u1"
    assert row.duration_seconds == 3000


@pytest.mark.asyncio
async def test_registered_row_adopted_by_profile_email_and_no_shows_marked_absent(db, make_session, make_profile):
    sess = make_session()
    ana = make_profile(full_name="Ana", email="Ana@Example.com")
    bo = make_profile(full_name="Bo", email="bo@example.com")
    db.add_all([
        SessionParticipant(session_id=sess.id, user_id=ana.id, status="registered"),
        SessionParticipant(session_id=sess.id, user_id=bo.id, status="registered"),
    ])
    db.commit()

    with patch.object(attendance_service.zoom_service, "get_participants", report(record("u1"))):
        await attendance_service.sync_session_participants(db, sess.id, "123")

    by_user = {r.user_id: r for r in rows(db, sess.id)}
    assert len(by_user) == 2
    assert by_user[ana.id].zoom_participant_uuid == "u1"
    assert by_user[ana.id].status == "present"
    assert by_user[bo.id].status == "absent"
    assert by_user[bo.id].attendance_percentage == 0.0


@pytest.mark.asyncio
async def test_empty_report_leaves_registrations_alone(db, make_session, make_profile):
    sess = make_session()
    user = make_profile()
    db.add(SessionParticipant(session_id=sess.id, user_id=user.id, status="registered"))
    db.commit()

    with patch.object(attendance_service.zoom_service, "get_participants", report()):
        result = await attendance_service.sync_session_participants(db, sess.id, "123")

    assert result == {"synced": 0, "skipped": 0, "errors": 0}
    assert rows(db, sess.id)[0].status == "registered"


@pytest.mark.asyncio
async def test_provider_failure_is_reported_in_errors(db, make_session):
    sess = make_session()
    failing = AsyncMock(side_effect=aiohttp.ClientError("connection reset"))
    with patch.object(attendance_service.zoom_service, "get_participants", failing):
        result = await attendance_service.sync_session_participants(db, sess.id, "123")
    assert result == {"synced": 0, "skipped": 0, "errors": 1}


@pytest.mark.asyncio
async def test_database_failure_rolls_back_whole_batch(db, make_session):
    sess = make_session()
    records = [record("u1"), record("u2", name="Bo", email="bo@example.com")]
    with patch.object(attendance_service.zoom_service, "get_participants", report(*records)), \
            patch.object(db, "commit", side_effect=SQLAlchemyError("disk full")):
        result = await attendance_service.sync_session_participants(db, sess.id, "123")

    assert result == {"synced": 0, "skipped": 0, "errors": 2}
    assert rows(db, sess.id) == []


def test_track_attendance_leaves_confirmed_rows_alone(db, make_session):
    sess = make_session()
    confirmed = SessionParticipant(session_id=sess.id, name="Ana", email="ana@example.com",
                                   zoom_participant_uuid="u1", duration_seconds=3000, status="present")
    db.add(confirmed)
    db.commit()

    row_id = attendance_service.track_attendance(db, "123", sess.id, {
        "name": "Ana", "email": "ANA@example.com",
        "join_time": "2030-05-01T10:00:00Z", "leave_time": "2030-05-01T10:05:00Z",
    })

    assert row_id == confirmed.id
    db.refresh(confirmed)
    assert confirmed.duration_seconds == 3000
    assert len(rows(db, sess.id)) == 1


def test_track_attendance_by_name_leaves_confirmed_rows_alone(db, make_session):
    sess = make_session()
    confirmed = SessionParticipant(session_id=sess.id, name="Ana", zoom_participant_uuid="u1",
                                   duration_seconds=3000, status="present")
    db.add(confirmed)
    db.commit()

    assert attendance_service.track_attendance(db, "123", sess.id, "Ana") == confirmed.id
    assert len(rows(db, sess.id)) == 1


@pytest.mark.asyncio
async def test_name_only_participant_joins_registered_row(db, make_session, make_profile):
    sess = make_session(zoom_meeting_id="123")
    ana = make_profile(full_name="Ana", email="ana@example.com")
    db.add(SessionParticipant(session_id=sess.id, user_id=ana.id, status="registered"))
    db.commit()

    data = {"start_time": "2030-05-01T10:00:00Z", "end_time": "2030-05-01T11:00:00Z", "participants": ["Ana"]}
    with patch.object(attendance_service.zoom_service, "get_participants", report(record("u1"))):
        await attendance_service.process_extension_recording(db, sess.id, "123", data)

    [row] = rows(db, sess.id)
    assert row.user_id == ana.id
    assert row.zoom_participant_uuid == "u1"
    assert attendance_service.attendance_report(db, sess.id)["present"] == 1


@pytest.mark.asyncio
async def test_sync_merges_leftover_extension_rows(db, make_session, make_profile):
    sess = make_session()
    ana = make_profile(full_name="Ana Lima", email="ana@example.com")
    db.add_all([
        SessionParticipant(session_id=sess.id, name="Ana", status="present"),
        SessionParticipant(session_id=sess.id, user_id=ana.id, status="registered"),
    ])
    db.commit()

    with patch.object(attendance_service.zoom_service, "get_participants", report(record("u1"))):
        result = await attendance_service.sync_session_participants(db, sess.id, "123")

    assert result["synced"] == 1
    [row] = rows(db, sess.id)
    assert row.user_id == ana.id
    assert row.status == "present"


def test_track_attendance_with_non_string_time_fails_cleanly(db, make_session):
    sess = make_session()
    row_id = attendance_service.track_attendance(db, "123", sess.id, {"name": "Ana", "join_time": 1893492000})
    assert row_id is None
    assert rows(db, sess.id) == []


def test_track_attendance_rejects_anonymous_participant(db, make_session):
    sess = make_session()
    assert attendance_service.track_attendance(db, "123", sess.id, {"join_time": "2030-05-01T10:00:00Z"}) is None


@pytest.mark.asyncio
async def test_process_extension_recording(db, make_session):
    sess = make_session(zoom_meeting_id="123")
    data = {
        "start_time": "2030-05-01T10:00:00Z",
        "end_time": "2030-05-01T11:00:00Z",
        "participants": ["Ana", {"name": "Bo", "email": "bo@example.com"}],
    }
    with patch.object(attendance_service.zoom_service, "get_participants", report()):
        result = await attendance_service.process_extension_recording(db, sess.id, "123", data)

    assert result["participantsProcessed"] == 2
    assert result["participantsSynced"] == {"synced": 0, "skipped": 0, "errors": 0}
    recording = db.get(SessionRecording, result["recordingId"])
    assert recording.recording_type == "extension_capture"
    assert recording.title == f"Session Recording {sess.id}"
    assert recording.duration_seconds == 3600
    assert {r.name for r in rows(db, sess.id)} == {"Ana", "Bo"}
    assert all(r.status == "present" for r in rows(db, sess.id))


@pytest.mark.asyncio
async def test_extension_file_path_is_not_treated_as_stored_file(db, make_session):
    sess = make_session()
    data = {"file_path": "../elsewhere/class.webm", "participants": []}
    result = await attendance_service.process_extension_recording(db, sess.id, None, data)

    recording = db.get(SessionRecording, result["recordingId"])
    assert recording.storage_path is None
    assert recording.download_url == "../elsewhere/class.webm"


def test_register_extension_upserts(db, make_profile):
    user = make_profile()
    assert attendance_service.register_extension(db, user.id, "ext-1", "1.0.0", {"auto": True})
    assert attendance_service.register_extension(db, user.id, "ext-1", "1.1.0")

    from cvup.models import UserExtension
    [ext] = db.query(UserExtension).all()
    assert ext.version == "1.1.0"
    assert ext.settings == {}


def test_attendance_report_counts(db, make_session):
    sess = make_session()
    db.add_all([
        SessionParticipant(session_id=sess.id, name="A", status="present", attendance_percentage=90.0),
        SessionParticipant(session_id=sess.id, name="B", status="partial", attendance_percentage=40.0),
        SessionParticipant(session_id=sess.id, name="C", status="absent", attendance_percentage=0.0),
        SessionParticipant(session_id=sess.id, name="D", status="registered"),
    ])
    db.commit()

    result = attendance_service.attendance_report(db, sess.id)
    assert (result["present"], result["partial"], result["absent"], result["registered"]) == (1, 1, 1, 1)
    assert result["average_attendance"] == pytest.approx(43.3)
    assert [p.name for p in result["participants"]][:2] == ["A", "B"]
