from datetime import datetime
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel
from typing import Optional
from ..core.config import settings
from ..core.database import get_db
from ..core.auth import require_user
from ..core.dependencies import get_auth_provider, get_storage_client
from ..core.errors import AuthProviderError, StorageError
from ..core.providers import AuthProvider
from ..core.storage import AVATARS_BUCKET, StorageClient
from ..utils.files import build_storage_path
from ..utils.profiles import fetch_profile, update_profile
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


class ProfileResponse(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: str
    university_name: str
    degree_program: str
    student_id_number: str
    linkedin_url: str
    portfolio_url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    university_name: Optional[str] = None
    degree_program: Optional[str] = None
    student_id_number: Optional[str] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    avatar_url: Optional[str] = None


async def _get_profile_or_404(db: AsyncSession, user_id: str):
    profile = await fetch_profile(db, user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Profile not found.")
    return profile


@router.get("", response_model=ProfileResponse)
async def get_profile(db: AsyncSession = Depends(get_db), user_id: str = Depends(require_user)):
    try:
        return await _get_profile_or_404(db, user_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting profile for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error retrieving profile")


@router.put("", response_model=ProfileResponse)
async def put_profile(changes: ProfileUpdate, db: AsyncSession = Depends(get_db),
                      user_id: str = Depends(require_user),
                      provider: AuthProvider = Depends(get_auth_provider)):
    try:
        profile = await _get_profile_or_404(db, user_id)
        data = changes.model_dump(exclude_unset=True)

        if "name" in data:
            data["name"] = (data["name"] or "").strip()
            if not data["name"]:
                raise HTTPException(status_code=400, detail="Name cannot be empty.")

        name_changed = "name" in data and data["name"] != profile.name
        profile = await update_profile(db, profile, data)

        # Keep the provider's display name in line with the profile
        if name_changed:
            await provider.update_display_name(db, user_id, profile.name)

        logger.info(f"Profile updated for {user_id}: {sorted(data)}")
        return profile
    except HTTPException:
        raise
    except AuthProviderError as e:
        logger.error(f"Display name sync failed for {user_id}: {e.code}")
        raise HTTPException(status_code=502, detail="Could not update profile.")
    except Exception as e:
        logger.error(f"Error updating profile for {user_id}: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Could not update profile.")


@router.post("/avatar", response_model=ProfileResponse)
async def upload_avatar(file: UploadFile = File(...), db: AsyncSession = Depends(get_db),
                        user_id: str = Depends(require_user),
                        storage: StorageClient = Depends(get_storage_client)):
    try:
        if not (file.content_type or "").startswith("image/"):
            raise HTTPException(status_code=400, detail="Please select an image file.")

        profile = await _get_profile_or_404(db, user_id)

        data = await file.read()
        if len(data) > settings.max_upload_bytes:
            raise HTTPException(status_code=413, detail="File is too large.")

        path = build_storage_path(user_id, file.filename or "avatar")
        await run_in_threadpool(storage.upload, AVATARS_BUCKET, path, data, file.content_type, True)
        avatar_url = await run_in_threadpool(storage.public_url, AVATARS_BUCKET, path)

        profile = await update_profile(db, profile, {"avatar_url": avatar_url})
        logger.info(f"Avatar updated for {user_id}: {path}")
        return profile
    except HTTPException:
        raise
    except StorageError as e:
        logger.error(f"Avatar upload failed for {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Avatar upload error: {e}")
    except Exception as e:
        logger.error(f"Error uploading avatar for {user_id}: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Could not update profile.")
