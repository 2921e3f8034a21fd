"""
HTTP middleware: bearer-token gate for the REST API, security headers.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.auth import parse_bearer, verify_token
from app.core.errors import InvalidToken, error_response
from tasklane_shared.schemas.common import ErrorKind

API_PREFIX = "/api"

# Exact-match; anything not listed here is protected.
OPEN_PATHS = frozenset({
    "/api/auth/sign_up",
    "/api/auth/log_in",
    "/api/auth/forgot_password",
    "/api/auth/reset_password",
    "/api/auth/verify_email",
    "/api/email_change_requests/confirm",
})

# ---------------------------------------------------------------------------
# Security Headers
# ---------------------------------------------------------------------------

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers[header] = value
        return response


# ---------------------------------------------------------------------------
# Bearer authentication
# ---------------------------------------------------------------------------

def is_open_path(path: str) -> bool:
    return path in OPEN_PATHS


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """
    Verify `Authorization: Bearer <token>` on every /api request.

    Skipped for:
    - Paths outside /api (health probes; the Socket.IO mount authenticates itself)
    - The exact paths in OPEN_PATHS
    - CORS preflight requests

    On success the subject id is attached as `request.state.user_id`.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not (path == API_PREFIX or path.startswith(API_PREFIX + "/")):
            return await call_next(request)
        if is_open_path(path) or request.method == "OPTIONS":
            return await call_next(request)

        token = parse_bearer(request.headers.get("Authorization"))
        if token is None:
            return error_response(401, ErrorKind.UNAUTHORIZED, "No token provided")

        try:
            request.state.user_id = verify_token(token)
        except InvalidToken:
            return error_response(401, ErrorKind.UNAUTHORIZED, "Invalid token")

        return await call_next(request)
