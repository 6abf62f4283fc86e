from datetime import timedelta

from ..models import TrainingSession, now
from .time_utils import ics_stamp


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def build_session_ics(session: TrainingSession) -> str:
    """
    Calendar invite for a training session. Points at the Zoom join URL when
    the session has one, otherwise at the generic meet link or location.
    """
    start = session.start_time
    end = session.end_time or (start + timedelta(hours=1))
    join_url = session.zoom_join_url or session.meet_link
    uid = f"{session.id}@cvup"

    description = session.description or ""
    if join_url:
        description = f"Join meeting: {join_url}\n\n{description}"

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//CV UP Training//EN",
        "METHOD:REQUEST",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{ics_stamp(now())}",
        f"DTSTART:{ics_stamp(start)}",
        f"DTEND:{ics_stamp(end)}",
        f"SUMMARY:{_escape(session.title)}",
        f"DESCRIPTION:{_escape(description)}",
    ]
    location = join_url or session.location
    if location:
        lines.append(f"LOCATION:{_escape(location)}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines)
