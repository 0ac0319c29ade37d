"""Auth configuration read from environment variables."""

import os
from dataclasses import dataclass, field


@dataclass
class AuthSettings:
    """Centralised auth configuration read from env vars at import time."""

    # When False, every request runs as a local dev user.
    enabled: bool = field(
        default_factory=lambda: os.getenv("AUTH_ENABLED", "true").lower() == "true"
    )

    # Secret key used to sign JWTs (HS256). Required when auth is enabled.
    secret_key: str = field(default_factory=lambda: os.getenv("AUTH_SECRET_KEY", ""))

    # Token lifetimes
    access_token_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("AUTH_ACCESS_TOKEN_TTL", "900"))  # 15 min
    )
    refresh_token_ttl_seconds: int = field(
        default_factory=lambda: int(
            os.getenv("AUTH_REFRESH_TOKEN_TTL", "604800")
        )  # 7 days
    )

    # bcrypt cost factor; tests lower it to keep signup fast.
    bcrypt_rounds: int = field(
        default_factory=lambda: int(os.getenv("AUTH_BCRYPT_ROUNDS", "12"))
    )

    # Identity used when auth is disabled.
    dev_user_email: str = field(
        default_factory=lambda: os.getenv("AUTH_DEV_USER_EMAIL", "dev@localhost")
    )

    def validate(self) -> None:
        """Raise if critical settings are missing while auth is enabled."""
        if not self.enabled:
            return
        if not self.secret_key:
            raise RuntimeError(
                "AUTH_SECRET_KEY must be set when AUTH_ENABLED=true. "
                'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(64))"'
            )


# Imported everywhere.
auth_settings = AuthSettings()
