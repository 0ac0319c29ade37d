"""JWT token creation and validation."""

import hashlib
import secrets
import uuid
from datetime import datetime, timezone, timedelta

import jwt as pyjwt

from sampha.auth.config import auth_settings


TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


def create_access_token(user_id: str, email: str) -> str:
    """Create a short-lived access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "type": TOKEN_TYPE_ACCESS,
        "iat": now,
        "exp": now + timedelta(seconds=auth_settings.access_token_ttl_seconds),
        "jti": uuid.uuid4().hex,
    }
    return pyjwt.encode(payload, auth_settings.secret_key, algorithm="HS256")


def create_refresh_token() -> tuple[str, str]:
    """Create a long-lived opaque refresh token.

    Returns (raw_token, token_hash); the raw token is sent to the client,
    the hash is stored in the database.
    """
    raw_token = secrets.token_urlsafe(48)
    return raw_token, hash_token(raw_token)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return pyjwt.decode(token, auth_settings.secret_key, algorithms=["HS256"])


def hash_token(raw: str) -> str:
    """SHA-256 hash a raw token string."""
    return hashlib.sha256(raw.encode()).hexdigest()
