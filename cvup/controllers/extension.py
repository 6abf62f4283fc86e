from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import attendance_service, extension_service

router = APIRouter(prefix="/extension", tags=["extension"])


@router.post("/messages")
async def handle_message(message: schemas.ExtensionMessage, db: Session = Depends(get_db)):
    """
    Entry point for the browser extension's messages, dispatched on `action`.
    """
    handler = extension_service.HANDLERS.get(message.action)
    if handler is None:
        return JSONResponse(status_code=400, content={"received": False, "message": "Unknown action"})
    return await handler(db, message)


@router.post("/register")
def register_extension(payload: schemas.ExtensionRegister, db: Session = Depends(get_db)):
    ok = attendance_service.register_extension(
        db, payload.user_id, payload.extension_id, payload.version, payload.settings,
    )
    if not ok:
        raise HTTPException(status_code=500, detail="Failed to register extension")
    return {"success": True}
