from datetime import datetime, timezone
from typing import Optional, Union


def parse_iso(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp (Zoom sends a trailing 'Z') into a naive UTC datetime.
    Empty values give None; anything unparseable raises ValueError.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 string, got {type(value).__name__}")
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_zoom_time(dt: datetime) -> str:
    # Zoom wants yyyy-MM-ddTHH:mm:ssZ for UTC start times
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def ics_stamp(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M%SZ")
