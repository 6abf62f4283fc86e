import re
from typing import Optional, Tuple

ZOOM_URL_RE = re.compile(r"zoom\.us/(?:j|wc)/(\d+)")
GOOGLE_MEET_HOST = "meet.google.com/"


def extract_meeting_id(url: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Return (meeting_id, platform) for a Zoom or Google Meet URL, or (None, None).
    Google Meet codes look like abc-defg-hij; anything without a hyphen is ignored.
    """
    if not url:
        return None, None

    if "zoom.us/j/" in url or "zoom.us/wc/" in url:
        match = ZOOM_URL_RE.search(url)
        return (match.group(1) if match else None), "zoom"

    if GOOGLE_MEET_HOST in url:
        code = url.split("?")[0].rstrip("/").split("/")[-1]
        if code and "-" in code:
            return code, "google"
        return None, "google"

    return None, None
