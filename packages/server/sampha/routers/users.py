"""User profile and preferences API.

Endpoints:
  GET    /v1/users/me               current user (null when signed out)
  PATCH  /v1/users/me               update name / avatar
  DELETE /v1/users/me               soft-delete the account
  GET    /v1/users/me/preferences   notification settings, default view, timezone
  PUT    /v1/users/me/preferences
  GET    /v1/users                  all active users
  GET    /v1/users/{user_id}
"""

from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.dependencies import (
    AuthUser,
    get_current_user,
    get_current_user_or_none,
)
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models import User, UserPreferences, UserSession
from sampha.routers._common import Name, get_active_user_or_404, serialize_user

logger = get_logger(__name__)

router = APIRouter()


class UpdateProfileRequest(BaseModel):
    name: Optional[Name] = None
    avatarUrl: Optional[str] = None


class PreferencesRequest(BaseModel):
    notificationSettings: Optional[dict] = None
    defaultView: Optional[Literal["timeline", "calendar", "kanban"]] = None
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v


def _serialize_preferences(prefs: Optional[UserPreferences], user_id: str) -> dict:
    if prefs is None:
        return {
            "user_id": user_id,
            "notification_settings": {},
            "default_view": "timeline",
            "timezone": "UTC",
        }
    return {
        "user_id": prefs.user_id,
        "notification_settings": prefs.notification_settings or {},
        "default_view": prefs.default_view,
        "timezone": prefs.timezone,
    }


async def get_preferences(session: AsyncSession, user_id: str) -> Optional[UserPreferences]:
    result = await session.execute(
        select(UserPreferences).where(UserPreferences.user_id == user_id)
    )
    return result.scalar_one_or_none()


@router.get("/me")
async def me(
    user: Optional[AuthUser] = Depends(get_current_user_or_none),
    session: AsyncSession = Depends(get_async_session),
):
    """Current user, or null."""
    if user is None:
        return None
    return serialize_user(await session.get(User, user.id))


@router.patch("/me")
async def update_me(
    body: UpdateProfileRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Update the current user's profile. Only provided fields change."""
    db_user = await get_active_user_or_404(session, user.id)
    if body.name is not None:
        db_user.name = body.name
    if body.avatarUrl is not None:
        db_user.avatar_url = body.avatarUrl or None
    await session.commit()
    return serialize_user(db_user)


@router.delete("/me")
async def delete_me(
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Soft-delete the account and revoke its refresh sessions."""
    db_user = await get_active_user_or_404(session, user.id)
    db_user.is_deleted = True
    await session.execute(delete(UserSession).where(UserSession.user_id == user.id))
    await session.commit()
    logger.info(f"User deleted their account: {user.id}")
    return {"status": "deleted", "user_id": user.id}


@router.get("/me/preferences")
async def read_preferences(
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    return _serialize_preferences(await get_preferences(session, user.id), user.id)


@router.put("/me/preferences")
async def write_preferences(
    body: PreferencesRequest,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """Upsert preferences; omitted fields keep their current value."""
    prefs = await get_preferences(session, user.id)
    if prefs is None:
        prefs = UserPreferences(
            id=UserPreferences.generate_id(),
            user_id=user.id,
            notification_settings={},
            default_view="timeline",
            timezone="UTC",
        )
        session.add(prefs)
    if body.notificationSettings is not None:
        prefs.notification_settings = body.notificationSettings
    if body.defaultView is not None:
        prefs.default_view = body.defaultView
    if body.timezone is not None:
        prefs.timezone = body.timezone
    await session.commit()
    return _serialize_preferences(prefs, user.id)


@router.get("/")
async def list_users(
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    """All active users (for member pickers)."""
    result = await session.execute(
        select(User).where(User.is_deleted == False).order_by(User.name)  # noqa: E712
    )
    return [serialize_user(u) for u in result.scalars().all()]


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    user: AuthUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_async_session),
):
    db_user = await session.get(User, user_id)
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_user(db_user)
