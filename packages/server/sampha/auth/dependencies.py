"""FastAPI authentication dependencies.

  get_current_user: requires a valid access token for an active user
  get_current_user_or_none: same, but anonymous callers get None
"""

from dataclasses import dataclass
from typing import Optional

import jwt as pyjwt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.auth.config import auth_settings
from sampha.auth.jwt import decode_token, TOKEN_TYPE_ACCESS
from sampha.database import get_async_session
from sampha.logging_config import get_logger
from sampha.models.auth import User
from sampha.utils import now_ms

logger = get_logger(__name__)


@dataclass
class AuthUser:
    """Represents the authenticated caller."""

    id: str
    email: str
    name: str

    @staticmethod
    def from_user(user: User) -> "AuthUser":
        return AuthUser(id=user.id, email=user.email, name=user.name)


def _extract_bearer_token(request: Request) -> Optional[str]:
    """Extract the Bearer token from the Authorization header or query param."""
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip()
    # Fallback: query parameter (for SSE / EventSource)
    return request.query_params.get("token")


async def find_active_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """Most recent non-deleted user with this email, if any."""
    result = await session.execute(
        select(User)
        .where(User.email == email.lower(), User.is_deleted == False)  # noqa: E712
        .order_by(User.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _get_dev_user(session: AsyncSession) -> AuthUser:
    """Synthetic local user used when AUTH_ENABLED=false (created on first use)."""
    user = await find_active_user_by_email(session, auth_settings.dev_user_email)
    if not user:
        user = User(
            id=User.generate_id(),
            name="Developer",
            email=auth_settings.dev_user_email.lower(),
            is_deleted=False,
            created_at=now_ms(),
        )
        session.add(user)
        await session.flush()
        logger.info(f"Created dev user {user.id}")
    return AuthUser.from_user(user)


async def _resolve_jwt(token: str, session: AsyncSession) -> AuthUser:
    """Decode an access token and load its user, raising 401 on any problem."""
    try:
        payload = decode_token(token)
    except pyjwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except pyjwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != TOKEN_TYPE_ACCESS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    user_id = payload.get("sub")
    user = await session.get(User, user_id) if user_id else None
    if not user or user.is_deleted:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found in app database",
        )
    return AuthUser.from_user(user)


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
) -> AuthUser:
    """Resolve the current user from the bearer access token.

    Raises 401 if no valid credential is provided.
    """
    if not auth_settings.enabled:
        return await _get_dev_user(session)

    token = _extract_bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _resolve_jwt(token, session)


async def get_current_user_or_none(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
) -> Optional[AuthUser]:
    """Like get_current_user, but returns None for unauthenticated callers."""
    try:
        return await get_current_user(request, session)
    except HTTPException as e:
        if e.status_code == status.HTTP_401_UNAUTHORIZED:
            return None
        raise
