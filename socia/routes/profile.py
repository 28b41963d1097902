"""Profile routes."""

from fastapi import APIRouter, HTTPException, status

from ..auth import CurrentUser
from ..errors import PersistenceError
from ..logging_config import get_logger
from ..models import PublicProfile, UpdateFlirtStyleRequest, UpdateProfileRequest, UserProfile
from ..store import Store
from .deps import parse_id

logger = get_logger("socia.profile")
router = APIRouter(prefix="/api/profile", tags=["profile"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


def _store_failed(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.get("/me", response_model=UserProfile)
async def get_my_profile(user_id: CurrentUser, store: Store):
    try:
        user = await store.get_user(user_id)
    except PersistenceError:
        raise _store_failed("Failed to load profile")
    if user is None:
        raise _not_found()
    return user


@router.put("/me")
async def update_my_profile(
    update: UpdateProfileRequest,
    user_id: CurrentUser,
    store: Store,
):
    """Update profile fields. Fields left out of the body are unchanged."""
    fields = update.model_dump(exclude_none=True)
    try:
        found = await store.update_user(user_id, fields)
    except PersistenceError:
        raise _store_failed("Failed to update profile")
    if not found:
        raise _not_found()
    logger.info(f"Profile updated for {user_id}: {sorted(fields)}")
    return {"message": "Profile updated successfully"}


@router.put("/flirt-style")
async def update_flirt_style(
    update: UpdateFlirtStyleRequest,
    user_id: CurrentUser,
    store: Store,
):
    try:
        found = await store.update_user(user_id, {"flirt_style": update.flirt_style.value})
    except PersistenceError:
        raise _store_failed("Failed to update flirt style")
    if not found:
        raise _not_found()
    return {"message": "Flirt style updated successfully"}


@router.get("/users/{user_id}", response_model=PublicProfile)
async def get_other_profile(user_id: str, _caller: CurrentUser, store: Store):
    """Another user's public profile (no phone number)."""
    target = parse_id(user_id, "user ID")
    try:
        user = await store.get_user(target)
    except PersistenceError:
        raise _store_failed("Failed to load profile")
    if user is None:
        raise _not_found()
    return PublicProfile(**user.model_dump(include=set(PublicProfile.model_fields)))
