"""GitHub integration models."""
from sqlalchemy import String, Text, Integer, BigInteger, ForeignKey, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from sampha.models.base import Base, PrefixedIdMixin

GITHUB_LINK_TYPES = ("issue", "pull_request")


class GitHubConnection(Base, PrefixedIdMixin):
    """GitHub App installation connected to a workspace."""
    __tablename__ = "github_connections"
    __table_args__ = (
        Index("idx_github_connections_workspace", "workspace_id"),
    )
    _id_prefix = "ghc_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    installation_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # ["owner/repo", ...]
    repositories: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class GitHubLink(Base, PrefixedIdMixin):
    """Issue or pull request linked to a task."""
    __tablename__ = "github_links"
    __table_args__ = (
        Index("idx_github_links_workspace", "workspace_id"),
        Index("idx_github_links_task", "task_id"),
        Index("idx_github_links_repo", "repo", "external_id"),
    )
    _id_prefix = "ghl_"

    workspace_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("workspaces.id"), nullable=False
    )
    task_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("tasks.id"), nullable=False
    )
    # issue | pull_request
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    # owner/repo
    repo: Mapped[str] = mapped_column(String(384), nullable=False)
    # Issue / PR number as a string
    external_id: Mapped[str] = mapped_column(String(64), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    # open | closed | merged | draft ...
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")
    last_synced_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class ExternalComment(Base, PrefixedIdMixin):
    """Comment mirrored from a linked GitHub issue or pull request."""
    __tablename__ = "external_comments"
    __table_args__ = (
        Index("idx_external_comments_link", "github_link_id"),
    )
    _id_prefix = "ghx_"

    github_link_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("github_links.id"), nullable=False
    )
    external_comment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # {"login": ..., "avatar_url": ..., "url": ...}
    author: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
