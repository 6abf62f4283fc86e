import logging
from typing import Any, Dict, List, Optional, Tuple, Union

import aiohttp
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ZoomError
from ..models import Profile, SessionParticipant, SessionRecording, TrainingSession, UserExtension, now
from ..utils.time_utils import parse_iso
from . import zoom_service
from .training_service import get_session_or_404

logger = logging.getLogger(__name__)

PRESENT_THRESHOLD = 75.0


def derive_attendance(duration_seconds: Optional[int], session: TrainingSession) -> Tuple[Optional[float], str]:
    """
    Percentage of the scheduled session a participant was in (capped at 100)
    and the status that follows from it.
    """
    if not duration_seconds or duration_seconds <= 0:
        return 0.0, "absent"
    total = session.duration_seconds
    if not total or total <= 0:
        return None, "present"
    percentage = min(100.0, round(duration_seconds / total * 100, 1))
    if percentage >= PRESENT_THRESHOLD:
        return percentage, "present"
    return percentage, "partial"


def _to_score(value: Any) -> Optional[float]:
    # Zoom reports attentiveness as "85%" or "" depending on the account
    if value is None or value == "":
        return None
    try:
        return float(str(value).rstrip("%"))
    except ValueError:
        return None


def _merge_report(records: List[Dict[str, Any]]) -> Tuple[Dict[str, Dict[str, Any]], int, int]:
    """Collapse rejoin records sharing a participant uuid into one entry each."""
    merged: Dict[str, Dict[str, Any]] = {}
    skipped = errors = 0

    for record in records:
        uuid = record.get("id")
        if not uuid:
            skipped += 1
            continue
        try:
            join_time = parse_iso(record.get("join_time"))
            leave_time = parse_iso(record.get("leave_time"))
            duration = int(record.get("duration") or 0)
        except (TypeError, ValueError) as e:
            logger.warning("Unparseable participant record %s: %s", uuid, e)
            errors += 1
            continue
        score = _to_score(record.get("attentiveness_score"))

        entry = merged.get(uuid)
        if entry is None:
            merged[uuid] = {
                "uuid": uuid,
                "user_id": record.get("user_id"),
                "name": record.get("name"),
                "email": record.get("user_email"),
                "join_time": join_time,
                "leave_time": leave_time,
                "duration": duration,
                "attentiveness": score,
            }
            continue

        if join_time and (entry["join_time"] is None or join_time < entry["join_time"]):
            entry["join_time"] = join_time
        if leave_time and (entry["leave_time"] is None or leave_time > entry["leave_time"]):
            entry["leave_time"] = leave_time
        entry["duration"] += duration
        if score is not None and (entry["attentiveness"] is None or score > entry["attentiveness"]):
            entry["attentiveness"] = score
        entry["name"] = entry["name"] or record.get("name")
        entry["email"] = entry["email"] or record.get("user_email")

    return merged, skipped, errors


def _unclaimed(db: Session, session_id: str):
    return db.query(SessionParticipant).filter(
        SessionParticipant.session_id == session_id,
        SessionParticipant.zoom_participant_uuid.is_(None),
    )


def _match_unclaimed(db: Session, session_id: str, email: Optional[str],
                     name: Optional[str]) -> Optional[SessionParticipant]:
    if email:
        email = email.lower()
        row = _unclaimed(db, session_id).filter(func.lower(SessionParticipant.email) == email).first()
        if row:
            return row
        row = (
            _unclaimed(db, session_id)
            .join(Profile, SessionParticipant.user_id == Profile.id)
            .filter(func.lower(Profile.email) == email)
            .first()
        )
        if row:
            return row
    if name:
        row = _unclaimed(db, session_id).filter(SessionParticipant.name == name).first()
        if row:
            return row
        return (
            _unclaimed(db, session_id)
            .join(Profile, SessionParticipant.user_id == Profile.id)
            .filter(Profile.full_name == name)
            .first()
        )
    return None


def _match_confirmed(db: Session, session_id: str, email: Optional[str],
                     name: Optional[str]) -> Optional[SessionParticipant]:
    conditions = []
    if email:
        conditions.append(func.lower(SessionParticipant.email) == email.lower())
    if name:
        conditions.append(SessionParticipant.name == name)
        conditions.append(Profile.full_name == name)
    return (
        db.query(SessionParticipant)
        .outerjoin(Profile, SessionParticipant.user_id == Profile.id)
        .filter(SessionParticipant.session_id == session_id,
                SessionParticipant.zoom_participant_uuid.isnot(None),
                or_(*conditions))
        .first()
    )


def _discard_extension_strays(db: Session, session_id: str, row: SessionParticipant) -> None:
    """Drop unclaimed extension rows for the person a report row now covers."""
    conditions = []
    if row.email:
        conditions.append(func.lower(SessionParticipant.email) == row.email.lower())
    if row.name:
        conditions.append(SessionParticipant.name == row.name)
    if not conditions:
        return
    strays = (
        _unclaimed(db, session_id)
        .filter(SessionParticipant.user_id.is_(None), SessionParticipant.id != row.id, or_(*conditions))
        .all()
    )
    for stray in strays:
        logger.info("Merging extension row %s into report row %s", stray.id, row.id)
        db.delete(stray)
    if strays:
        db.flush()


def _upsert_report_row(db: Session, sess: TrainingSession, zoom_meeting_id: str,
                       entry: Dict[str, Any]) -> SessionParticipant:
    row = (
        db.query(SessionParticipant)
        .filter(SessionParticipant.session_id == sess.id,
                SessionParticipant.zoom_participant_uuid == entry["uuid"])
        .first()
    )
    if row is None:
        row = _match_unclaimed(db, sess.id, entry["email"], entry["name"])
    if row is None:
        row = SessionParticipant(session_id=sess.id)
        db.add(row)

    row.zoom_participant_uuid = entry["uuid"]
    row.zoom_meeting_id = str(zoom_meeting_id)
    row.zoom_user_id = entry["user_id"]
    row.name = entry["name"] or row.name
    row.email = entry["email"] or row.email
    row.join_time = entry["join_time"]
    row.leave_time = entry["leave_time"]
    row.duration_seconds = entry["duration"]
    row.attentiveness_score = entry["attentiveness"]
    row.attendance_percentage, row.status = derive_attendance(entry["duration"], sess)
    # later lookups in this batch must see the claimed uuid
    db.flush()
    _discard_extension_strays(db, sess.id, row)
    return row


async def sync_session_participants(db: Session, session_id: str, zoom_meeting_id: str) -> Dict[str, int]:
    """
    Pull the Zoom participant report for a meeting and upsert it into the
    session's participant rows. Returns {synced, skipped, errors}.
    """
    result = {"synced": 0, "skipped": 0, "errors": 0}
    sess = get_session_or_404(db, session_id)

    try:
        records = await zoom_service.get_participants(zoom_meeting_id)
    except (ZoomError, aiohttp.ClientError) as e:
        logger.error("Failed to fetch participants for meeting %s: %s", zoom_meeting_id, e)
        result["errors"] = 1
        return result

    if not records:
        logger.info("No participant report data for meeting %s", zoom_meeting_id)
        return result

    merged, result["skipped"], result["errors"] = _merge_report(records)
    if not merged:
        return result

    try:
        for entry in merged.values():
            _upsert_report_row(db, sess, zoom_meeting_id, entry)

        no_shows = (
            _unclaimed(db, session_id)
            .filter(SessionParticipant.status == "registered", SessionParticipant.join_time.is_(None))
            .all()
        )
        for row in no_shows:
            row.status = "absent"
            row.attendance_percentage = 0.0

        db.commit()
        result["synced"] = len(merged)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database error syncing participants for session %s: %s", session_id, e)
        result["errors"] += len(merged)
        result["synced"] = 0

    logger.info("Synced participants for session %s: %s", session_id, result)
    return result


def track_attendance(db: Session, meeting_id: Optional[str], session_id: str,
                     participant: Union[str, Dict[str, Any]]) -> Optional[str]:
    """
    Record an extension-reported participant, given as a dict or a bare
    display name. Rows already confirmed by the Zoom report are never
    overwritten. Returns the row id, or None on failure.
    """
    if isinstance(participant, str):
        participant = {"name": participant}
    if not isinstance(participant, dict):
        logger.warning("Ignoring malformed participant data for session %s", session_id)
        return None
    name = participant.get("name")
    email = participant.get("email")
    if not name and not email:
        logger.warning("Ignoring participant without name or email for session %s", session_id)
        return None

    try:
        sess = db.get(TrainingSession, session_id)
        if sess is None:
            logger.error("Cannot track attendance, session %s not found", session_id)
            return None

        confirmed = _match_confirmed(db, session_id, email, name)
        if confirmed:
            return confirmed.id

        join_time = parse_iso(participant.get("join_time"))
        leave_time = parse_iso(participant.get("leave_time"))

        row = _match_unclaimed(db, session_id, email, name)
        if row is None:
            row = SessionParticipant(session_id=session_id, name=name, email=email, status="registered")
            db.add(row)

        row.name = row.name or name
        row.email = row.email or email
        if meeting_id:
            row.zoom_meeting_id = str(meeting_id)
        if join_time and (row.join_time is None or join_time < row.join_time):
            row.join_time = join_time
        if leave_time and (row.leave_time is None or leave_time > row.leave_time):
            row.leave_time = leave_time
        score = _to_score(participant.get("attentiveness_score"))
        if score is not None:
            row.attentiveness_score = score

        if row.join_time and row.leave_time:
            row.duration_seconds = max(0, int((row.leave_time - row.join_time).total_seconds()))
            row.attendance_percentage, row.status = derive_attendance(row.duration_seconds, sess)
        elif row.join_time:
            row.status = "present"

        db.commit()
        return row.id
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        logger.error("Error tracking attendance for %s in session %s: %s", name or email, session_id, e)
        return None


async def process_extension_recording(db: Session, session_id: str, zoom_meeting_id: Optional[str],
                                      data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Store recording metadata captured by the browser extension, record the
    participants it saw, then reconcile with the Zoom report.
    """
    get_session_or_404(db, session_id)
    result: Dict[str, Any] = {"recordingId": None, "participantsProcessed": 0, "participantsSynced": None}

    try:
        start = parse_iso(data.get("start_time"))
        end = parse_iso(data.get("end_time"))
        duration = int((end - start).total_seconds()) if start and end else None
        recording = SessionRecording(
            session_id=session_id,
            zoom_meeting_id=str(zoom_meeting_id) if zoom_meeting_id else None,
            title=data.get("title") or f"Session Recording {session_id}",
            date=start.date() if start else None,
            start_time=start,
            end_time=end,
            duration_seconds=duration,
            recording_type=data.get("recording_type") or "extension_capture",
            file_size_bytes=data.get("file_size") or 0,
            # the extension's file lives on the user's machine, never in our storage
            download_url=data.get("download_url") or data.get("file_path"),
            thumbnail_url=data.get("thumbnail_url"),
            share_url=data.get("share_url"),
            password=data.get("password"),
        )
        db.add(recording)
        db.commit()
        result["recordingId"] = recording.id
    except (SQLAlchemyError, ValueError) as e:
        db.rollback()
        logger.error("Error storing extension recording for session %s: %s", session_id, e)
        return result

    for participant in data.get("participants") or []:
        if isinstance(participant, str):
            participant = {"name": participant}
        participant = dict(participant)
        if participant.get("join_time") is None:
            participant["join_time"] = data.get("start_time")
        if participant.get("leave_time") is None:
            participant["leave_time"] = data.get("end_time")
        if track_attendance(db, zoom_meeting_id, session_id, participant):
            result["participantsProcessed"] += 1

    if zoom_meeting_id:
        result["participantsSynced"] = await sync_session_participants(db, session_id, zoom_meeting_id)
    return result


def register_extension(db: Session, user_id: str, extension_id: str, version: str,
                       settings: Optional[Dict[str, Any]] = None) -> bool:
    try:
        ext = (
            db.query(UserExtension)
            .filter(UserExtension.user_id == user_id, UserExtension.extension_id == extension_id)
            .first()
        )
        if ext is None:
            ext = UserExtension(user_id=user_id, extension_id=extension_id)
            db.add(ext)
        ext.version = version
        ext.settings = settings or {}
        ext.last_registered_at = now()
        db.commit()
        logger.info("Registered extension %s v%s for user %s", extension_id, version, user_id)
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Error registering extension %s for user %s: %s", extension_id, user_id, e)
        return False


def attendance_report(db: Session, session_id: str) -> Dict[str, Any]:
    get_session_or_404(db, session_id)
    rows = db.query(SessionParticipant).filter(SessionParticipant.session_id == session_id).all()
    rows.sort(key=lambda r: r.attendance_percentage or 0.0, reverse=True)

    counts = {status: 0 for status in ("present", "partial", "absent", "registered")}
    for row in rows:
        if row.status in counts:
            counts[row.status] += 1
    attended = [r.attendance_percentage for r in rows if r.attendance_percentage is not None]
    average = round(sum(attended) / len(attended), 1) if attended else 0.0

    return {
        "session_id": session_id,
        "total": len(rows),
        **counts,
        "average_attendance": average,
        "participants": rows,
    }
