"""Authentication module for the sampha API."""

from sampha.auth.config import auth_settings
from sampha.auth.dependencies import (
    get_current_user,
    get_current_user_or_none,
    AuthUser,
)
from sampha.auth.membership import (
    get_workspace_membership,
    assert_workspace_member,
    assert_workspace_admin,
)

__all__ = [
    "auth_settings",
    "get_current_user",
    "get_current_user_or_none",
    "AuthUser",
    "get_workspace_membership",
    "assert_workspace_member",
    "assert_workspace_admin",
]
