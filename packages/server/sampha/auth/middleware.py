"""Auth middleware: global route protection with path allowlist.

Applied as Starlette middleware so it runs before FastAPI dependency
injection and covers every route without per-router Depends().
"""

import re
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from sampha.auth.config import auth_settings
from sampha.auth.dependencies import _extract_bearer_token

# Paths that never require authentication.
PUBLIC_PATH_PATTERNS: list[re.Pattern] = [
    # Health checks
    re.compile(r"^/health$"),
    re.compile(r"^/v1/status$"),
    # Login flow
    re.compile(r"^/v1/auth/signup$"),
    re.compile(r"^/v1/auth/login$"),
    re.compile(r"^/v1/auth/refresh$"),
    # Signed-out visitors get null / 0 rather than 401
    re.compile(r"^/v1/users/me$"),
    re.compile(r"^/v1/notifications/unread-count$"),
    # Webhook endpoints (protected by their own signature verification)
    re.compile(r"^/v1/webhooks/"),
    # OpenAPI docs
    re.compile(r"^/docs$"),
    re.compile(r"^/redoc$"),
    re.compile(r"^/openapi\.json$"),
]


def _is_public_path(path: str) -> bool:
    """Return True if the path matches a public pattern."""
    return any(pattern.match(path) for pattern in PUBLIC_PATH_PATTERNS)


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject requests without a bearer token on non-public paths.

    This is a fast pre-check. Signature validation and the user lookup happen
    in the dependency layer (get_current_user).

    When AUTH_ENABLED=false, this middleware is a no-op.
    """

    async def dispatch(self, request: Request, call_next):
        if not auth_settings.enabled:
            return await call_next(request)

        if _is_public_path(request.url.path) or request.method == "OPTIONS":
            return await call_next(request)

        if not _extract_bearer_token(request):
            return JSONResponse(
                status_code=401,
                content={"detail": "Not authenticated"},
                headers={"WWW-Authenticate": "Bearer"},
            )

        return await call_next(request)
