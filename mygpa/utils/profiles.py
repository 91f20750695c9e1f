from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ..core.providers import AuthIdentity
from ..models.profile import Profile
import logging

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "university_name",
    "degree_program",
    "student_id_number",
    "linkedin_url",
    "portfolio_url",
    "avatar_url",
)


async def fetch_profile(session: AsyncSession, user_id: str) -> Optional[Profile]:
    result = await session.execute(select(Profile).filter(Profile.id == user_id))
    return result.scalar_one_or_none()


async def create_profile(session: AsyncSession, identity: AuthIdentity, **extra) -> Profile:
    """Create the profile row for a freshly seen identity."""
    fields = {field: "" for field in EDITABLE_FIELDS}
    fields["name"] = identity.display_name or ""
    fields["avatar_url"] = identity.photo_url or ""
    fields.update({key: value for key, value in extra.items() if key in EDITABLE_FIELDS and value is not None})

    profile = Profile(id=identity.uid, email=identity.email, **fields)
    session.add(profile)
    await session.commit()
    await session.refresh(profile)

    logger.info(f"Created profile for {identity.email} ({identity.uid})")
    return profile


async def sync_profile(session: AsyncSession, identity: AuthIdentity) -> Profile:
    """
    Load the profile for a signed-in identity, creating it if missing.
    Existing profiles pick up the provider's current email and photo.
    """
    profile = await fetch_profile(session, identity.uid)
    if not profile:
        return await create_profile(session, identity)

    changed = False
    if identity.email and profile.email != identity.email:
        profile.email = identity.email
        changed = True
    if identity.photo_url and profile.avatar_url != identity.photo_url:
        profile.avatar_url = identity.photo_url
        changed = True

    if changed:
        profile.updated_at = datetime.now(timezone.utc)
        await session.commit()
        await session.refresh(profile)
    return profile


async def update_profile(session: AsyncSession, profile: Profile, changes: dict) -> Profile:
    for key, value in changes.items():
        if key in EDITABLE_FIELDS and value is not None:
            setattr(profile, key, value)

    profile.updated_at = datetime.now(timezone.utc)
    await session.commit()
    await session.refresh(profile)
    return profile
