"""User accounts, refresh sessions and per-user preferences."""

from typing import Optional

from sqlalchemy import String, Text, Boolean, BigInteger, Index, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from sampha.models.base import Base, PrefixedIdMixin


class User(Base, PrefixedIdMixin):
    """Application user.

    Users are never hard-deleted; ``is_deleted`` hides them from lookups and
    blocks authentication while keeping authorship references intact.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_is_deleted", "is_deleted"),
    )
    _id_prefix = "usr_"

    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class UserSession(Base, PrefixedIdMixin):
    """Tracks active refresh token sessions."""

    __tablename__ = "user_sessions"
    __table_args__ = (
        Index("idx_user_sessions_user", "user_id"),
        Index("idx_user_sessions_refresh_hash", "refresh_token_hash", unique=True),
    )
    _id_prefix = "ses_"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    refresh_token_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class UserPreferences(Base, PrefixedIdMixin):
    """Per-user settings that follow the user across workspaces."""

    __tablename__ = "user_preferences"
    __table_args__ = (Index("idx_user_preferences_user", "user_id", unique=True),)
    _id_prefix = "pref_"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    # Free-form JSON object, e.g. {"email": true, "due_soon": false}
    notification_settings: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # timeline | calendar | kanban
    default_view: Mapped[str] = mapped_column(String(16), nullable=False, default="timeline")
    # IANA timezone name
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
