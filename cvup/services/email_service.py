import logging
from email.message import EmailMessage
from typing import List

import aiosmtplib

from ..config import get_settings
from ..models import TrainingSession
from ..utils.ics_utils import build_session_ics

logger = logging.getLogger(__name__)


async def send_email_with_ics(
    to_emails: List[str],
    subject: str,
    body: str,
    ics_content: str,
    ics_filename: str = "invite.ics"
) -> None:
    settings = get_settings()
    msg = EmailMessage()
    msg["From"] = settings.email_from
    msg["To"] = ", ".join(to_emails)
    msg["Subject"] = subject
    msg.set_content(body)
    msg.add_attachment(
        ics_content.encode("utf-8"),
        maintype="text",
        subtype="calendar",
        filename=ics_filename,
        params={"method": "REQUEST", "charset": "UTF-8"}
    )
    await aiosmtplib.send(
        msg,
        hostname=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_user or None,
        password=settings.smtp_pass or None,
        start_tls=True
    )


async def send_session_invite(sess: TrainingSession, email: str) -> bool:
    """Mail the session's calendar invite. Returns False when SMTP is off or sending fails."""
    if not get_settings().smtp_enabled:
        logger.debug("SMTP not configured, skipping invite for session %s", sess.id)
        return False

    join_url = sess.zoom_join_url or sess.meet_link
    body = f"You are registered for {sess.title}."
    if join_url:
        body += f"\n\nJoin here: {join_url}"
    try:
        await send_email_with_ics([email], f"Registered: {sess.title}", body,
                                  build_session_ics(sess), "session_invite.ics")
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error("Failed to send invite for session %s to %s: %s", sess.id, email, e)
        return False
    logger.info("Sent invite for session %s to %s", sess.id, email)
    return True
