"""Authentication API routes: signup, login, token refresh, logout."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from sampha.database import get_async_session
from sampha.models.auth import User, UserSession
from sampha.utils import now_ms
from sampha.auth.config import auth_settings
from sampha.auth.dependencies import find_active_user_by_email
from sampha.auth.jwt import create_access_token, create_refresh_token, hash_token
from sampha.auth.passwords import hash_password, verify_password
from sampha.logging_config import get_logger
from sampha.routers._common import Name, serialize_user

logger = get_logger(__name__)

router = APIRouter()


# ─── Schemas ──────────────────────────────────────────────────────────────────


class SignupRequest(BaseModel):
    name: Name
    email: EmailStr
    password: str = Field(min_length=8)
    avatarUrl: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refreshToken: str


# ─── Helpers ──────────────────────────────────────────────────────────────────


async def _issue_tokens(user: User, session: AsyncSession, request: Request) -> dict:
    """Create access + refresh tokens and persist the refresh session."""
    access_token = create_access_token(user_id=user.id, email=user.email)
    raw_refresh, refresh_hash = create_refresh_token()

    now = now_ms()
    session.add(
        UserSession(
            id=UserSession.generate_id(),
            user_id=user.id,
            refresh_token_hash=refresh_hash,
            expires_at=now + auth_settings.refresh_token_ttl_seconds * 1000,
            created_at=now,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    )

    return {
        "accessToken": access_token,
        "refreshToken": raw_refresh,
        "tokenType": "Bearer",
        "expiresIn": auth_settings.access_token_ttl_seconds,
        "user": serialize_user(user),
    }


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/signup")
async def signup(
    body: SignupRequest,
    request: Request,
    session: AsyncSession = Depends(get_async_session),
):
    """Create an account and sign in."""
    email = body.email.lower()
    if await find_active_user_by_email(session, email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    user = User(
        id=User.generate_id(),
        name=body.name,
        email=email,
        avatar_url=body.avatarUrl,
        password_hash=hash_password(body.password),
        is_deleted=False,
        created_at=now_ms(),
    )
    session.add(user)
    await session.flush()
    tokens = await _issue_tokens(user, session, request)
    await session.commit()
    logger.info(f"User signed up: {user.id}")
    return tokens


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    session: AsyncSession = Depends(get_async_session),
):
    """Exchange email + password for tokens."""
    user = await find_active_user_by_email(session, body.email)
    if not user or not user.password_hash or not verify_password(
        body.password, user.password_hash
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    tokens = await _issue_tokens(user, session, request)
    await session.commit()
    logger.debug(f"User logged in: {user.id}")
    return tokens


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    request: Request,
    session: AsyncSession = Depends(get_async_session),
):
    """Rotate a refresh token: the old session is revoked, a new one issued."""
    token_hash = hash_token(body.refreshToken)
    result = await session.execute(
        select(UserSession).where(UserSession.refresh_token_hash == token_hash)
    )
    user_session = result.scalar_one_or_none()
    if not user_session or user_session.expires_at < now_ms():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    user = await session.get(User, user_session.user_id)
    await session.delete(user_session)
    if not user or user.is_deleted:
        await session.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    tokens = await _issue_tokens(user, session, request)
    await session.commit()
    return tokens


@router.post("/logout")
async def logout(
    body: RefreshRequest,
    session: AsyncSession = Depends(get_async_session),
):
    """Revoke a refresh token. Unknown tokens are ignored."""
    await session.execute(
        delete(UserSession).where(
            UserSession.refresh_token_hash == hash_token(body.refreshToken)
        )
    )
    await session.commit()
    return {"status": "logged_out"}
