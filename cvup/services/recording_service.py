import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import aiofiles
import aiofiles.os
import aiohttp
from azure.core.exceptions import AzureError
from azure.storage.blob import BlobSasPermissions, BlobServiceClient as SyncBlobServiceClient, generate_blob_sas
from azure.storage.blob.aio import BlobServiceClient
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..models import SessionRecording
from ..oauth_token import get_zoom_oauth_token
from ..utils.time_utils import parse_iso
from . import zoom_service
from .training_service import get_session_or_404

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media"
SAS_LIFETIME = timedelta(hours=1)


def _use_azure() -> bool:
    return bool(get_settings().azure_storage_connection_string)


def _local_path(storage_path: str) -> str:
    root = os.path.realpath(get_settings().media_root)
    path = os.path.realpath(os.path.join(root, *storage_path.split("/")))
    if os.path.commonpath([root, path]) != root:
        raise ValueError(f"Storage path {storage_path!r} is outside the media root")
    return path


async def store_file(storage_path: str, content: bytes) -> str:
    """Write content to the configured backend and return a URL for it."""
    settings = get_settings()
    if _use_azure():
        async with BlobServiceClient.from_connection_string(settings.azure_storage_connection_string) as service:
            container = service.get_container_client(settings.recordings_container)
            blob_client = container.get_blob_client(storage_path)
            await blob_client.upload_blob(content, overwrite=True)
            return blob_client.url

    outpath = _local_path(storage_path)
    os.makedirs(os.path.dirname(outpath), exist_ok=True)
    async with aiofiles.open(outpath, "wb") as f:
        await f.write(content)
    return f"{MEDIA_URL_PREFIX}/{storage_path}"


async def remove_file(storage_path: str) -> None:
    settings = get_settings()
    if _use_azure():
        async with BlobServiceClient.from_connection_string(settings.azure_storage_connection_string) as service:
            container = service.get_container_client(settings.recordings_container)
            await container.delete_blob(storage_path)
        return
    await aiofiles.os.remove(_local_path(storage_path))


def stream_url(recording: SessionRecording) -> Optional[str]:
    """Playback URL: a short-lived SAS link for Azure blobs, else whatever is stored."""
    if recording.storage_path and _use_azure():
        settings = get_settings()
        service = SyncBlobServiceClient.from_connection_string(settings.azure_storage_connection_string)
        sas = generate_blob_sas(
            account_name=service.account_name,
            container_name=settings.recordings_container,
            blob_name=recording.storage_path,
            account_key=service.credential.account_key,
            permission=BlobSasPermissions(read=True),
            expiry=datetime.now(timezone.utc) + SAS_LIFETIME,
        )
        blob_url = service.get_blob_client(settings.recordings_container, recording.storage_path).url
        return f"{blob_url}?{sas}"
    if recording.storage_path:
        return f"{MEDIA_URL_PREFIX}/{recording.storage_path}"
    return recording.play_url or recording.download_url


def get_recording_or_404(db: Session, recording_id: str) -> SessionRecording:
    recording = db.get(SessionRecording, recording_id)
    if not recording:
        raise HTTPException(status_code=404, detail="Recording not found")
    return recording


def list_session_recordings(db: Session, session_id: Optional[str] = None) -> List[SessionRecording]:
    query = db.query(SessionRecording)
    if session_id:
        get_session_or_404(db, session_id)
        query = query.filter(SessionRecording.session_id == session_id)
    recordings = query.order_by(SessionRecording.created_at.desc()).all()
    for rec in recordings:
        if rec.date is None and rec.start_time:
            rec.date = rec.start_time.date()
    return recordings


async def upload_session_recording(db: Session, session_id: str, filename: str, content: bytes,
                                   metadata: Optional[Dict[str, Any]] = None) -> SessionRecording:
    get_session_or_404(db, session_id)
    metadata = metadata or {}
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "mp4"
    storage_path = f"{session_id}/{uuid4()}.{ext}"
    try:
        start = parse_iso(metadata.get("start_time"))
        end = parse_iso(metadata.get("end_time"))
    except ValueError:
        raise HTTPException(status_code=400, detail="start_time and end_time must be ISO 8601 timestamps")

    try:
        url = await store_file(storage_path, content)
    except (AzureError, OSError) as e:
        logger.error("Failed to store recording for session %s: %s", session_id, e)
        raise HTTPException(status_code=500, detail="Failed to store recording file")

    recording = SessionRecording(
        session_id=session_id,
        title=metadata.get("title") or os.path.splitext(filename or "")[0] or "Session Recording",
        date=start.date() if start else None,
        start_time=start,
        end_time=end,
        duration_seconds=int((end - start).total_seconds()) if start and end else None,
        thumbnail_url=metadata.get("thumbnail_url"),
        file_size_bytes=len(content),
        download_url=url,
        storage_path=storage_path,
        recording_type=metadata.get("recording_type") or "manual_upload",
    )
    try:
        db.add(recording)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to save recording row for session %s: %s", session_id, e)
        try:
            await remove_file(storage_path)
        except (AzureError, OSError) as cleanup_error:
            logger.error("Failed to clean up stored file %s: %s", storage_path, cleanup_error)
        raise HTTPException(status_code=500, detail="Failed to save recording")

    db.refresh(recording)
    logger.info("Uploaded recording %s for session %s", recording.id, session_id)
    return recording


async def delete_session_recording(db: Session, recording_id: str) -> None:
    recording = get_recording_or_404(db, recording_id)
    if recording.storage_path:
        try:
            await remove_file(recording.storage_path)
        except (AzureError, OSError, ValueError) as e:
            logger.error("Failed to remove stored file for recording %s: %s", recording_id, e)
    db.delete(recording)
    db.commit()
    logger.info("Deleted recording %s", recording_id)


def record_view(db: Session, recording_id: str) -> SessionRecording:
    recording = get_recording_or_404(db, recording_id)
    recording.views = (recording.views or 0) + 1
    db.commit()
    db.refresh(recording)
    return recording


async def _download_zoom_file(client: aiohttp.ClientSession, url: str, token: str) -> Optional[bytes]:
    # Bearer header first, then the download_access_token query parameter
    async with client.get(url, headers={"Authorization": f"Bearer {token}"}, allow_redirects=True) as r1:
        if r1.status == 200:
            return await r1.read()
    async with client.get(url, params={"download_access_token": token}, allow_redirects=True) as r2:
        if r2.status == 200:
            return await r2.read()
    return None


def _recording_window(rec_file: Dict[str, Any]) -> Tuple[Optional[datetime], Optional[datetime]]:
    try:
        return parse_iso(rec_file.get("recording_start")), parse_iso(rec_file.get("recording_end"))
    except ValueError:
        return None, None


async def import_cloud_recordings(db: Session, session_id: str, zoom_meeting_id: Optional[str] = None,
                                  store: bool = False) -> List[SessionRecording]:
    """
    Pull the meeting's Zoom cloud recording files into session_recordings.
    Files already imported for the session are skipped. With store=True each
    new file is also downloaded and copied into our own storage.
    """
    sess = get_session_or_404(db, session_id)
    meeting_id = zoom_meeting_id or sess.zoom_meeting_id
    if not meeting_id:
        raise HTTPException(status_code=400, detail="Session has no Zoom meeting")

    data = await zoom_service.get_recordings(meeting_id)
    files = (data or {}).get("recording_files") or []
    if not files:
        logger.info("No cloud recordings for meeting %s", meeting_id)
        return []

    existing = {
        rid for (rid,) in db.query(SessionRecording.zoom_recording_id)
        .filter(SessionRecording.session_id == session_id).all()
    }
    topic = (data or {}).get("topic") or sess.title
    token = await get_zoom_oauth_token() if store else None

    created: List[SessionRecording] = []
    async with aiohttp.ClientSession() as client:
        for rec_file in files:
            file_id = rec_file.get("id")
            if not file_id or file_id in existing:
                continue
            start, end = _recording_window(rec_file)
            recording = SessionRecording(
                session_id=session_id,
                zoom_meeting_id=str(meeting_id),
                zoom_recording_id=file_id,
                title=f"{topic} ({rec_file.get('recording_type') or rec_file.get('file_type')})",
                date=start.date() if start else None,
                start_time=start,
                end_time=end,
                duration_seconds=int((end - start).total_seconds()) if start and end else None,
                file_size_bytes=rec_file.get("file_size") or 0,
                download_url=rec_file.get("download_url"),
                play_url=rec_file.get("play_url"),
                share_url=(data or {}).get("share_url"),
                recording_type="zoom_cloud",
                password=(data or {}).get("password"),
            )

            if store and rec_file.get("download_url"):
                try:
                    content = await _download_zoom_file(client, rec_file["download_url"], token)
                except aiohttp.ClientError as e:
                    logger.error("Failed to download recording file %s: %s", file_id, e)
                    content = None
                if content:
                    ext = (rec_file.get("file_extension") or rec_file.get("file_type") or "mp4").lower()
                    storage_path = f"{session_id}/{meeting_id}/{file_id}.{ext}"
                    try:
                        recording.download_url = await store_file(storage_path, content)
                        recording.storage_path = storage_path
                        recording.file_size_bytes = len(content)
                    except (AzureError, OSError) as e:
                        logger.error("Failed to store recording file %s: %s", file_id, e)

            db.add(recording)
            existing.add(file_id)
            created.append(recording)

    db.commit()
    for recording in created:
        db.refresh(recording)
    logger.info("Imported %d cloud recordings for session %s", len(created), session_id)
    return created
