"""In-app notifications."""

from sqlalchemy import String, BigInteger, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from sampha.models.base import Base, PrefixedIdMixin

NOTIFICATION_TYPES = ("mention", "assignment", "status_change", "due_soon", "overdue")


class Notification(Base, PrefixedIdMixin):
    """Notification addressed to one user about one entity."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_user", "user_id"),
        Index("idx_notifications_user_unread", "user_id", "is_read"),
        Index("idx_notifications_workspace", "workspace_id"),
    )
    _id_prefix = "ntf_"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id"), nullable=False
    )
    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    # mention | assignment | status_change | due_soon | overdue
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(16), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
