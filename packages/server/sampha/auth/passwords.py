"""Password hashing and verification using bcrypt."""

import hashlib
from typing import Optional

import bcrypt

from sampha.auth.config import auth_settings


def _prehash(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes
    return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=auth_settings.bcrypt_rounds)
    return bcrypt.hashpw(_prehash(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """False for a wrong password, a malformed hash or a user without one."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("utf-8"))
    except (ValueError, TypeError):
        return False
