from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import career_service

router = APIRouter(prefix="/profiles", tags=["profiles"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/", response_model=schemas.ProfileOut, status_code=201)
def create_profile(payload: schemas.ProfileCreate, db: Session = Depends(get_db)):
    return career_service.create_profile(db, payload)


@router.get("/{user_id}", response_model=schemas.ProfileOut)
def get_profile(user_id: str, db: Session = Depends(get_db)):
    return career_service.get_profile_or_404(db, user_id)


@router.patch("/{user_id}", response_model=schemas.ProfileOut)
def update_profile(user_id: str, payload: schemas.ProfileUpdate, db: Session = Depends(get_db)):
    return career_service.update_profile(db, user_id, payload)


@router.post("/{user_id}/avatar", response_model=schemas.ProfileOut)
async def upload_avatar(user_id: str, file: UploadFile = File(...), db: Session = Depends(get_db)):
    content = await file.read()
    return await career_service.upload_avatar(db, user_id, file.filename, content)


# --- Admin ---

@admin_router.get("/stats", response_model=schemas.AdminStats)
def get_stats(db: Session = Depends(get_db)):
    return career_service.admin_stats(db)


@admin_router.get("/users", response_model=List[schemas.ProfileOut])
def list_users(status: Optional[str] = None, db: Session = Depends(get_db)):
    return career_service.list_users(db, status)


@admin_router.patch("/users/{user_id}/status", response_model=schemas.ProfileOut)
def update_user_status(user_id: str, payload: schemas.UserStatusUpdate, db: Session = Depends(get_db)):
    return career_service.update_user_status(db, user_id, payload.status)


@admin_router.patch("/users/{user_id}/role", response_model=schemas.ProfileOut)
def update_user_role(user_id: str, payload: schemas.UserRoleUpdate, db: Session = Depends(get_db)):
    return career_service.update_user_role(db, user_id, payload.role)
