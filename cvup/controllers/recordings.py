import json
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..exceptions import ZoomError
from ..services import recording_service

router = APIRouter(tags=["recordings"])


@router.get("/recordings", response_model=List[schemas.RecordingOut])
def list_all_recordings(db: Session = Depends(get_db)):
    return recording_service.list_session_recordings(db)


@router.get("/sessions/{session_id}/recordings", response_model=List[schemas.RecordingOut])
def list_recordings(session_id: str, db: Session = Depends(get_db)):
    return recording_service.list_session_recordings(db, session_id)


@router.post("/sessions/{session_id}/recordings", response_model=schemas.RecordingOut, status_code=201)
async def upload_recording(
    session_id: str,
    file: UploadFile = File(...),
    metadata: Optional[str] = Form(None),
    db: Session = Depends(get_db)
):
    """
    Upload a recording file. `metadata` is an optional JSON object with
    title, start_time, end_time, recording_type and thumbnail_url.
    """
    try:
        meta = json.loads(metadata) if metadata else {}
    except ValueError:
        raise HTTPException(status_code=400, detail="metadata must be a JSON object")
    if not isinstance(meta, dict):
        raise HTTPException(status_code=400, detail="metadata must be a JSON object")
    content = await file.read()
    return await recording_service.upload_session_recording(db, session_id, file.filename, content, meta)


@router.post("/sessions/{session_id}/recordings/import", response_model=List[schemas.RecordingOut])
async def import_recordings(
    session_id: str,
    payload: schemas.RecordingImport,
    db: Session = Depends(get_db)
):
    """
    Import the meeting's Zoom cloud recordings, optionally copying the files into storage.
    """
    try:
        return await recording_service.import_cloud_recordings(db, session_id, payload.zoom_meeting_id, payload.store)
    except ZoomError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/recordings/{recording_id}/stream_url")
def get_stream_url(recording_id: str, db: Session = Depends(get_db)):
    recording = recording_service.get_recording_or_404(db, recording_id)
    url = recording_service.stream_url(recording)
    if not url:
        raise HTTPException(status_code=404, detail="Recording has no playable file")
    return {"recording_id": recording.id, "stream_url": url}


@router.post("/recordings/{recording_id}/views", response_model=schemas.RecordingOut)
def record_view(recording_id: str, db: Session = Depends(get_db)):
    return recording_service.record_view(db, recording_id)


@router.delete("/recordings/{recording_id}", status_code=204)
async def delete_recording(recording_id: str, db: Session = Depends(get_db)):
    await recording_service.delete_session_recording(db, recording_id)
